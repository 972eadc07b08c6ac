from .loader import load_config
from .models import (
    FixityConfig,
    HashingConfig,
    ReportConfig,
    ScanConfig,
)

__all__ = [
    "FixityConfig",
    "HashingConfig",
    "ReportConfig",
    "ScanConfig",
    "load_config",
]
