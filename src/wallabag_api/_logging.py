import logging


def get_logger(name: str) -> logging.Logger:
    """
    Return the named logger, attaching a console handler the first time.

    The logger does not propagate to the root logger so that the client's
    diagnostics are printed once even when the application configures
    logging itself.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger
