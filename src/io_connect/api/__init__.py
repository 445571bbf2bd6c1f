"""Public client surface.

``DataAccess`` is the only entry point applications need. Every method
catches its own failures, logs them and returns an empty value; use
``DataAccess.query`` when "no data" and "failed" must be told apart.
"""

from .data_access import DataAccess
from .models import RetrievalResult, RetrievalStatus

__all__ = ["DataAccess", "RetrievalResult", "RetrievalStatus"]
