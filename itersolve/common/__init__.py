"""
Common utilities shared by the solver modules.

**Logging and Monitoring:**
- Logger with indentation levels, colours and optional file output
- One global logger per process

Example:
    >>> from itersolve.common import get_global_logger
    >>> logger = get_global_logger()
    >>> logger.info("Hello")
"""

from .flog import Logger, Colors, get_global_logger

__all__ = ["Logger", "Colors", "get_global_logger"]
