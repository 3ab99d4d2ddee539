import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: str = 'INFO', json: bool = True) -> None:
    """Install a single stream handler on the root logger."""
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if getattr(handler, '_markmorph', False):
            logger.removeHandler(handler)

    logHandler = logging.StreamHandler()
    logHandler._markmorph = True  # type: ignore
    if json:
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s'
        )
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
