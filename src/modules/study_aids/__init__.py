"""
Study Aids Module

Services
--------
- StudyAidService: generated notes and the doubt solver, with their saved
  history

Boundaries
----------
- TextGenerator: text-generation contract (protocol); transport is supplied
  by the embedding application
"""

from .generator import TextGenerator
from .service import GeneratedNotes, SolvedDoubt, StudyAidService

__all__ = [
    "GeneratedNotes",
    "SolvedDoubt",
    "StudyAidService",
    "TextGenerator",
]
