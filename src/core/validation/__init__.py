"""
Study Twin Validation Package

Exposes `InputValidator`, the canonical validation helpers for values
entering the service layer.
"""

from src.core.validation.input_validator import InputValidator

__all__ = ["InputValidator"]
