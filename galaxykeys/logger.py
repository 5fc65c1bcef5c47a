import logging, json, sys, time, os


def get_logger(name="galaxykeys", level=logging.INFO, to_file=None):
    """Unified structured logger for all galaxykeys components."""
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            fmt=json.dumps({
                "ts": "%(asctime)s",
                "level": "%(levelname)s",
                "name": "%(name)s",
                "msg": "%(message)s"
            }),
            datefmt="%Y-%m-%dT%H:%M:%SZ",
        )
        formatter.converter = time.gmtime  # UTC timestamps
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger


def configure(level: str = "INFO", to_file=None):
    """
    Apply a level (and optional file sink) to the shared "GK" logger tree.

    Component loggers are named "GK.<Component>" and propagate here, so the
    CLI only has to configure the parent once.
    """
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    return get_logger("GK", level=lvl, to_file=to_file)
