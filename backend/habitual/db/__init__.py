"""Database utilities and models."""

from habitual.db.base import Base
from habitual.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
