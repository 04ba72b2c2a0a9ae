"""
Centralized logging configuration for the PokeBuddy chat backend.

This module provides a function to set up application-wide logging,
including formatting, log levels, and handlers for console and file output.
"""

import logging
import logging.handlers # Required for RotatingFileHandler
import sys # To ensure we can always output to stdout for console
import json
from pathlib import Path

class StructuredLogFormatter(logging.Formatter):
    """
    Custom formatter that renders every record as a single JSON line.

    Features:
    - Includes interaction_id if present in extra fields
    - Includes session_id if present in extra fields
    - Merges an optional `extra_fields` dict into the payload
    - Preserves standard log fields (timestamp, level, etc.)
    """

    def format(self, record):
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }

        if hasattr(record, 'interaction_id'):
            log_data['interaction_id'] = record.interaction_id

        if hasattr(record, 'session_id'):
            log_data['session_id'] = record.session_id

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)

DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges per-call `extra` with the adapter's defaults.

    The stock adapter replaces the caller's `extra` with its own. Here the adapter values act as
    defaults, so a turn-scoped logger can carry `interaction_id` and `session_id` while individual
    calls still attach their own fields.
    """

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs


def get_logger(name: str, **context) -> logging.LoggerAdapter:
    """
    Get a logger carrying default structured fields.

    Every call returns a fresh adapter, so context bound for one conversation turn never
    leaks into another turn running concurrently.

    Args:
        name (str): Logger name (usually __name__)
        **context: Field values to attach to every record (e.g. interaction_id, session_id)

    Returns:
        logging.LoggerAdapter: Configured logger adapter
    """
    defaults = {
        'interaction_id': 'no_id',
        'session_id': 'no_session',
    }
    defaults.update(context)
    return ContextLoggerAdapter(logging.getLogger(name), defaults)

def setup_app_logging(config: dict = None, default_level=logging.INFO) -> None:
    """
    Set up logging for the entire application.

    This function configures the root logger with handlers for console
    and file output. Log levels and file paths can be specified via
    the optional config dictionary.

    Args:
        config (dict, optional): A dictionary containing logging configurations.
                                Expected keys:
                                - 'level': String representation of log level (e.g., "DEBUG", "INFO").
                                - 'file_path': Path to the log file. Empty disables file logging.
                                - 'max_bytes': Max size of the log file before rotation.
                                - 'backup_count': Number of backup log files to keep.
                                - 'date_format': Custom log date format string.
        default_level (int, optional): The default logging level if not specified
                                     in the config. Defaults to logging.INFO.
    """
    if config is None:
        config = {}

    log_level_str = str(config.get('level', logging.getLevelName(default_level))).upper()
    numeric_log_level = getattr(logging, log_level_str, default_level)
    if not isinstance(numeric_log_level, int):
        print(f"Warning: Invalid log level string '{log_level_str}'. Using default level {logging.getLevelName(default_level)}.", file=sys.stderr)
        numeric_log_level = default_level

    log_date_format = config.get('date_format', DEFAULT_LOG_DATE_FORMAT)
    formatter = StructuredLogFormatter(datefmt=log_date_format)

    # Configure the root logger so every module using logging.getLogger(__name__) inherits it.
    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_log_level)

    if root_logger.hasHandlers():
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file_path = config.get('file_path', 'pokebuddy.log')
    if log_file_path:
        try:
            Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
            max_bytes = int(config.get('max_bytes', 5*1024*1024))  # 5 MB
            backup_count = int(config.get('backup_count', 3))

            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Error setting up file logging to {log_file_path}: {e}. File logging will be disabled.", file=sys.stderr)

    # httpx logs every request at INFO; keep the upstream chatter out of the application log.
    logging.getLogger('httpx').setLevel(logging.WARNING)

    get_logger("LoggingConfig").info("Application logging setup complete. Level: %s", log_level_str)
