"""
Logging setup shared by every module of the tree service

Modules call get_project_logger(__name__) once at import time. The level is
taken from TREE_LOG_LEVEL and TREE_LOG_FILE adds a file handler next to the
stdout one.
"""

import logging
import os
import sys


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, level: str = "INFO", log_file: str = None) -> logging.Logger:
    """
    Configure a named logger with the project format

    Args:
        name: Logger name, usually the module's __name__
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (any case)
        log_file: Also write to this file when given

    Returns:
        The logger; an already configured one is returned untouched
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_project_logger(module_name: str, verbose: bool = False) -> logging.Logger:
    """Logger for a tree service module; verbose forces DEBUG"""
    level = "DEBUG" if verbose else os.environ.get('TREE_LOG_LEVEL', 'INFO')
    return setup_logger(module_name, level, log_file=os.environ.get('TREE_LOG_FILE') or None)
