"""
Logging setup shared by the CLI and the API server.

The data layer logs through loguru; the scheduler, API and betting
modules use stdlib logging. Both end up on stderr with the same format,
and loguru additionally writes a rotating log file.
"""
import logging
import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGURU_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
    "{extra[source]}{extra[component]} | {message}"
)


def configure_logging(settings, level: str | None = None) -> None:
    """
    Configure stdlib logging and loguru sinks from settings.

    Args:
        settings: Application settings
        level: Override for settings.log_level
    """
    level = (level or ("DEBUG" if settings.debug else settings.log_level)).upper()

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    # apscheduler logs every job run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logger.remove()
    logger.configure(extra={"source": "", "component": ""})
    logger.add(sys.stderr, level=level, format=LOGURU_FORMAT)

    if settings.log_file:
        log_path = Path(settings.log_file)
        if not log_path.is_absolute():
            log_path = settings.project_root / log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            format=LOGURU_FORMAT,
            rotation="10 MB",
            retention=5,
        )
