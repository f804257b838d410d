"""
Utilities module - logging and small formatting helpers.
"""

from shellsense.utils.logger import logger
from shellsense.utils.timefmt import format_relative

__all__ = ["logger", "format_relative"]
