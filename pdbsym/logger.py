import logging

from pdbsym.conf import LOG_LEVEL

FORMAT = '%(levelname)-7s | %(asctime)-23s | %(name)-8s | %(message)s'


class CuteHandler(logging.StreamHandler):
    """Stream handler printing each logger in its own colour."""

    def format(self, record):
        color = hash(record.name) % 7 + 31
        return ("\x1b[%dm" % color) + super(CuteHandler, self).format(record) + "\x1b[0m"


def getlogger(name):
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    # modules are imported once but getlogger may be called again
    if not any(isinstance(h, CuteHandler) for h in logger.handlers):
        stream_handler = CuteHandler()
        stream_handler.setFormatter(logging.Formatter(FORMAT))
        logger.addHandler(stream_handler)
        logger.propagate = False

    return logger
