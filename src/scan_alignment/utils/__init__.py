"""
Utility Functions Module

Common utilities used across the scan alignment project:
- Logging setup
- YAML configuration loading
"""

from .logging import add_package_log_file, setup_logger, set_package_log_level
from .config import AppConfig, ICPConfig, load_config

__all__ = [
    "setup_logger",
    "set_package_log_level",
    "add_package_log_file",
    "AppConfig",
    "ICPConfig",
    "load_config",
]
