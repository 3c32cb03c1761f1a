"""
Stats Module

Services
--------
- StudyStatsService: read-only study overview (profile, streak, weekly activity)
"""

from .service import StudyOverview, StudyStatsService

__all__ = [
    "StudyOverview",
    "StudyStatsService",
]
