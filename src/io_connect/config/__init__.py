from .loader import (
    ConnectSettings,
    RetrievalMode,
    RetryPolicy,
    build_settings,
    load_config,
)

__all__ = [
    "ConnectSettings",
    "RetrievalMode",
    "RetryPolicy",
    "build_settings",
    "load_config",
]
