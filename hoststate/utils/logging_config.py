# hoststate/utils/logging_config.py
"""
Logging setup for collection runs.

Console output goes to stderr so stdout stays free for the JSON envelope.
File logging is optional: a rotating main log, a rotating error log and,
in debug mode, one log file per run.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from datetime import datetime

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
CONSOLE_FORMAT = '%(levelname)s: %(message)s'

# Logger name -> level used when debug is off
COMPONENT_LEVELS = {
    'connector': logging.INFO,
    'collector': logging.INFO,
    'subcollector': logging.INFO,
    'tool_prober': logging.INFO,
    'actions': logging.INFO,
    'config_manager': logging.INFO,
    'parser_registry': logging.WARNING,
}


class LoggingConfig:
    """Configures the root logger and the per-component loggers"""

    @staticmethod
    def setup_logging(log_level='INFO', enable_debug=False, log_to_file=False, log_dir='logs'):
        """
        Set up logging for a collection run

        Args:
            log_level: Root level name ('DEBUG', 'INFO', 'WARNING', 'ERROR')
            enable_debug: Force DEBUG everywhere and keep a per-run debug log
            log_to_file: Also write hoststate.log and errors.log
            log_dir: Directory for log files, created when missing
        """
        level = logging.DEBUG if enable_debug else getattr(logging, log_level.upper())

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root_logger.addHandler(console_handler)

        if log_to_file:
            LoggingConfig._add_file_handlers(root_logger, Path(log_dir), enable_debug)

        LoggingConfig._configure_component_loggers(enable_debug)

    @staticmethod
    def _add_file_handlers(root_logger, log_path: Path, enable_debug: bool):
        log_path.mkdir(parents=True, exist_ok=True)
        formatter = logging.Formatter(DETAILED_FORMAT)

        handlers = [
            LoggingConfig._rotating(log_path / 'hoststate.log', 10,
                                    logging.DEBUG if enable_debug else logging.INFO),
            LoggingConfig._rotating(log_path / 'errors.log', 5, logging.ERROR),
        ]
        if enable_debug:
            run_log = log_path / f'debug_{datetime.now().strftime("%Y%m%d_%H%M%S")}.log'
            debug_handler = logging.FileHandler(run_log)
            debug_handler.setLevel(logging.DEBUG)
            handlers.append(debug_handler)

        for handler in handlers:
            handler.setFormatter(formatter)
            root_logger.addHandler(handler)

    @staticmethod
    def _rotating(path: Path, max_mb: int, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(path, maxBytes=max_mb * 1024 * 1024, backupCount=3)
        handler.setLevel(level)
        return handler

    @staticmethod
    def _configure_component_loggers(enable_debug):
        for name, level in COMPONENT_LEVELS.items():
            logging.getLogger(name).setLevel(logging.DEBUG if enable_debug else level)

        # SSH transport logs every packet negotiation
        logging.getLogger('paramiko').setLevel(logging.WARNING)

    @staticmethod
    def get_logger(name):
        return logging.getLogger(name)


def setup_logging(log_level='INFO', enable_debug=False, log_to_file=False, log_dir='logs'):
    LoggingConfig.setup_logging(log_level, enable_debug, log_to_file, log_dir)


def get_logger(name):
    return LoggingConfig.get_logger(name)
