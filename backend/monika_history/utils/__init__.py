"""
Utility modules for monika-history.
"""
from monika_history.utils.logger import setup_logger

__all__ = [
    "setup_logger",
]
