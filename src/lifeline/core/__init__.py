"""
Core module for Lifeline

Contains configuration management, logging setup and the
SQLite database layer.
"""

from .config import ConfigurationManager, ConfigurationError
from .database import DatabaseManager, DatabaseError, initialize_database, get_database
from .logging import initialize_logging, get_logger, get_structured_logger

__all__ = [
    'ConfigurationManager',
    'ConfigurationError',
    'DatabaseManager',
    'DatabaseError',
    'initialize_database',
    'get_database',
    'initialize_logging',
    'get_logger',
    'get_structured_logger'
]
