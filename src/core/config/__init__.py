"""
Configuration for the Study Twin backend.

Static configuration is loaded from environment variables (with ``.env``
support) into the class-level `Config` at import time.

Usage
-----
```python
from src.core.config import Config

url = Config.DATABASE_URL
attempts = Config.PROGRESSION_RETRY_MAX_ATTEMPTS
```
"""

from src.core.config.config import Config, Environment

__all__ = ["Config", "Environment"]
