"""io-connect: async client for cursor-paginated IoT time-series data."""

from io_connect.api import DataAccess, RetrievalResult, RetrievalStatus
from io_connect.config.loader import ConnectSettings, RetrievalMode, RetryPolicy
from io_connect.constants import VERSION
from io_connect.parsing.cleaner import CleanOptions
from io_connect.retrieval.orchestrator import RetrievalRequest

__version__ = VERSION

__all__ = [
    "CleanOptions",
    "ConnectSettings",
    "DataAccess",
    "RetrievalMode",
    "RetrievalRequest",
    "RetrievalResult",
    "RetrievalStatus",
    "RetryPolicy",
    "__version__",
]
