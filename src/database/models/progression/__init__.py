"""
Progression models: the per-user study twin and its study sessions.
"""

from .study_session import StudySession
from .study_twin import StudyTwin

__all__ = ["StudyTwin", "StudySession"]
