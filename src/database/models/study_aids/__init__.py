"""
Study aid models: saved generated notes and answered questions.
"""

from .doubt import Doubt
from .generated_material import GeneratedMaterial

__all__ = ["Doubt", "GeneratedMaterial"]
