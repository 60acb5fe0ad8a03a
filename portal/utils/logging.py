import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logger = logging.getLogger("portal")
    logger.setLevel(level)
    if any(getattr(h, "_portal_handler", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._portal_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.propagate = False
