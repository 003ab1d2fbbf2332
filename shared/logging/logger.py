import logging
import os
from datetime import datetime
from pathlib import Path

_LOGGERS = {}
_RUN_STAMP = datetime.now().strftime("%Y%m%d-%H%M%S")


def _log_dir() -> Path:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _log_level() -> int:
    name = os.getenv("LOG_LEVEL", "DEBUG").strip().upper()
    level = logging.getLevelName(name)
    if isinstance(level, int):
        return level
    # unknown names come back as "Level <name>"
    logging.getLogger(__name__).warning(
        f"Unknown LOG_LEVEL {name!r}; using DEBUG"
    )
    return logging.DEBUG


def get_logger(
    name: str,
    *,
    runtime: str = "presence",
) -> logging.Logger:
    """
    Create or retrieve a named logger.

    Parameters:
    - name: logger namespace (e.g. core.presence_app, discord.supervisor)
    - runtime: log file prefix (presence | discord | health)

    Every logger writes to the console and to one file per runtime per run.
    Setting LOG_FILE=0 keeps output on the console only.
    """
    cache_key = f"{runtime}:{name}"
    if cache_key in _LOGGERS:
        return _LOGGERS[cache_key]

    logger = logging.getLogger(cache_key)
    logger.setLevel(_log_level())

    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )

    # ------------------------------
    # Console handler
    # ------------------------------
    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    # ------------------------------
    # File handler (one per run)
    # ------------------------------
    if os.getenv("LOG_FILE", "1") != "0":
        logfile = _log_dir() / f"{runtime}-{_RUN_STAMP}.log"

        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _LOGGERS[cache_key] = logger

    return logger
