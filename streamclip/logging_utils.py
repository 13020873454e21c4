import logging
import os

LOG_FORMAT = '%(asctime)s [%(name)s] %(levelname)s: %(message)s'

def setup_logger(name: str) -> logging.Logger:
    """Set up logger with appropriate level based on environment."""
    logger = logging.getLogger(name)

    if os.getenv('DEBUG', '').lower() == 'true':
        level = logging.DEBUG
    else:
        level = getattr(logging, os.getenv('STREAMCLIP_LOG_LEVEL', 'INFO').upper(), logging.INFO)
    logger.setLevel(level)

    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT)
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        log_file = os.getenv('STREAMCLIP_LOG_FILE')
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
