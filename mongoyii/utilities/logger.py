"""
Logger module for mongoyii.

This module provides a centralized logger that can be imported throughout the package
without causing circular import issues. Query traces and profiling results are logged at DEBUG.
"""

import logging

# Module-level logger
logger: logging.Logger = logging.getLogger('mongoyii')
logger.setLevel(logging.WARNING)  # Default to WARNING level to avoid spam

def set_logger(custom_logger: logging.Logger) -> None:
    """ Routes the package's messages to a logger of your own. Modules that imported `logger` directly keep the old one, use get_logger() where that matters. """
    global logger
    logger = custom_logger

def set_log_level(level: int) -> None:
    """Set the logging level for the module. 
    
    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, or logging.CRITICAL
    """
    logger.setLevel(level)

def get_logger() -> logging.Logger:
    """ Returns the logger currently in use. Prefer this over importing `logger` directly when set_logger() may have been called. """
    return logger

def is_debug() -> bool:
    """ Serializing queries for traces is not free, so callers check this before building the message. """
    return logger.isEnabledFor(logging.DEBUG)

def trace(message: str, category: str = 'mongoyii') -> None:
    logger.debug(f"[{category}] {message}")
