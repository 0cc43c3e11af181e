"""
Logging Configuration for Lifeline

Sets up the stdlib handlers (rotating file and console) that every
Lifeline logger writes through, and configures structlog so SOS runs
can emit key/value events bound to a run ID.
"""

import functools
import logging
import logging.handlers
import re
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional
import structlog


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOGGER_PREFIX = 'lifeline'

_SIZE_UNITS = {
    '': 1, 'B': 1,
    'K': 1024, 'KB': 1024,
    'M': 1024 ** 2, 'MB': 1024 ** 2,
    'G': 1024 ** 3, 'GB': 1024 ** 3,
}


def parse_size(size: Any) -> int:
    """Convert '10MB', '512KB' or a plain byte count to bytes"""
    match = re.fullmatch(r'\s*(\d+)\s*([KMG]?B?)\s*', str(size).upper())
    if not match:
        raise ValueError(f"Invalid size: {size!r}")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2)]


def qualified_name(name: str) -> str:
    """Place a component name under the lifeline logger hierarchy"""
    if name == LOGGER_PREFIX or name.startswith(f'{LOGGER_PREFIX}.'):
        return name
    return f'{LOGGER_PREFIX}.{name}'


def _level(name: str) -> int:
    return getattr(logging, str(name).upper())


class LifelineLogger:
    """
    Root logging setup driven by the 'logging' configuration section.

    Keys: level, file, max_size, backup_count, console, console_level and
    services (a mapping of component name to level).
    """

    def __init__(self, config: Dict):
        self.settings = config.get('logging', {})
        self.level = _level(self.settings.get('level', 'INFO'))

        self._configure_structlog()
        self._configure_root()
        self._apply_component_levels()

    def _configure_structlog(self):
        # Events are rendered to JSON and handed to the stdlib handlers below
        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(ensure_ascii=False)
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def _configure_root(self):
        root = logging.getLogger()
        root.setLevel(self.level)
        for handler in list(root.handlers):
            root.removeHandler(handler)

        log_file = self.settings.get('file', 'logs/lifeline.log')
        if log_file:
            root.addHandler(self._file_handler(log_file))

        if self.settings.get('console', True):
            root.addHandler(self._console_handler())

        logging.getLogger('asyncio').setLevel(logging.WARNING)

    def _file_handler(self, log_file: str) -> logging.Handler:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=parse_size(self.settings.get('max_size', '10MB')),
            backupCount=self.settings.get('backup_count', 5),
            encoding='utf-8'
        )
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        handler.setLevel(self.level)
        return handler

    def _console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
        handler.setLevel(_level(self.settings.get('console_level', 'INFO')))
        return handler

    def _apply_component_levels(self):
        for component, level in (self.settings.get('services') or {}).items():
            logging.getLogger(qualified_name(component)).setLevel(_level(level))


_logger_instance: Optional[LifelineLogger] = None


def initialize_logging(config: Dict) -> LifelineLogger:
    """Initialize the global logging system"""
    global _logger_instance
    _logger_instance = LifelineLogger(config)
    return _logger_instance


def get_logger(name: str) -> logging.Logger:
    """Get a stdlib logger under the lifeline hierarchy"""
    if _logger_instance is None:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    return logging.getLogger(qualified_name(name))


def get_structured_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger under the lifeline hierarchy"""
    if _logger_instance is None and not structlog.is_configured():
        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="ISO"),
                structlog.processors.JSONRenderer()
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
        )
    return structlog.get_logger(qualified_name(name))


class LogContext:
    """Bind key/value context to a structured logger for one block"""

    def __init__(self, logger: structlog.stdlib.BoundLogger, **context):
        self.logger = logger
        self.context = context
        self.bound_logger = None

    def __enter__(self):
        self.bound_logger = self.logger.bind(**self.context)
        return self.bound_logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.bound_logger is not None:
            self.bound_logger.error("context_failed", error=repr(exc_val))
        return False


def log_async_function_call(logger: logging.Logger):
    """Decorator that logs an async call and how long it took"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.monotonic()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{func.__name__} failed after {time.monotonic() - started:.3f}s: {e}")
                raise
            logger.debug(f"{func.__name__} finished in {time.monotonic() - started:.3f}s")
            return result
        return wrapper
    return decorator
