"""
Feature modules for the Study Twin backend.

- shared: base service/repository patterns and domain exceptions
- progression: study twin progression store and service
- stats: study statistics read-model
- study_aids: generated notes and the doubt solver
"""
