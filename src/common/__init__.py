# Common utilities and shared modules
"""
Shared components used by the maintenance and reports packages:
- Data models (Pydantic schemas)
- Dataset loading
- Logging configuration
- Project configuration
"""

from .config import settings, PROJECT_ROOT, DATA_DIR
from .dataset import DatasetError, InventoryDataset, load_dataset
from .logging import setup_logging

__all__ = [
    "settings",
    "PROJECT_ROOT",
    "DATA_DIR",
    "DatasetError",
    "InventoryDataset",
    "load_dataset",
    "setup_logging",
]
