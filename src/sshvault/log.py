# This is mainly factored out into a separate module so it can be ignored in
# coverage analysis. The Python logging module won't allow reasonable
# teardown in tests.
import logging


def setup_logging(loggers, level):
    ch = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
    ch.setFormatter(formatter)
    for logger in loggers:
        logger = logging.getLogger(logger)
        logger.setLevel(level)
        logger.addHandler(ch)
    return ch
