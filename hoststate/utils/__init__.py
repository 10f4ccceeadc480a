from .logging_config import setup_logging, get_logger, LoggingConfig

__all__ = ['setup_logging', 'get_logger', 'LoggingConfig']
