"""
Study Twin Test Suite
=====================

Test Organization
-----------------
- tests/unit/          : Fast unit tests against the in-memory store
- tests/unit/domain/   : Pure domain rule tests
- tests/integration/   : Integration tests with testcontainers (real PostgreSQL)
- tests/fakes.py       : In-memory ProgressionStore

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test business logic
- Integration tests: Slower, test real infrastructure interactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
