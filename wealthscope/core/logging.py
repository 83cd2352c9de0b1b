import logging
import sys

_HANDLER_MARKER = "_wealthscope_handler"
_QUIET_LOGGERS = ("sqlalchemy", "httpx", "httpcore", "aiosqlite")


def setup_logging(level: str = "INFO") -> None:
    """Send service logs to stdout; safe to call once per app factory run."""
    root = logging.getLogger()
    for existing in [h for h in root.handlers if getattr(h, _HANDLER_MARKER, False)]:
        root.removeHandler(existing)

    stream = logging.StreamHandler(sys.stdout)
    setattr(stream, _HANDLER_MARKER, True)
    stream.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    root.addHandler(stream)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
