import logging
import sys
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loguru import logger

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> <level>{level:<8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {name}:{function}:{line} - {message}"

# uvicorn and httpx log through the standard library
_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx")


@runtime_checkable
class LogConsumer(Protocol):
    def register(self, level: str) -> None: ...
    def describe(self, level: str) -> str: ...


class ConsoleLogConsumer:
    def register(self, level: str) -> None:
        logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT)

    def describe(self, level: str) -> str:
        return f"console (stderr, {level})"


class FileLogConsumer:
    """Rotating log file, written through loguru's queue."""

    def __init__(self, path: str = "coach.log", rotation: str = "10 MB", retention: int = 3):
        self._path = Path(path)
        self._rotation = rotation
        self._retention = retention

    def register(self, level: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self._path),
            level=level,
            format=_FILE_FORMAT,
            rotation=self._rotation,
            retention=self._retention,
            enqueue=True,
        )

    def describe(self, level: str) -> str:
        return f"file ({self._path}, {level})"


class InterceptHandler(logging.Handler):
    """Re-emit standard library log records through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(exception=record.exc_info).log(level, record.getMessage())


CONSUMERS: dict[str, type] = {
    "console": ConsoleLogConsumer,
    "file": FileLogConsumer,
}

DEFAULT_CONSUMERS: list[dict[str, Any]] = [
    {"type": "console"},
    {"type": "file", "path": "coach.log"},
]


def intercept_stdlib_logging(level: str = "INFO") -> None:
    handler = InterceptHandler()
    for name in _STDLIB_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.setLevel(level)
        std_logger.propagate = False


def _create_consumer(spec: dict[str, Any]) -> LogConsumer | None:
    consumer_type = spec.get("type", "")
    factory = CONSUMERS.get(consumer_type)
    if factory is None:
        logger.warning(f"Unknown log consumer type: {consumer_type!r}")
        return None
    options = {key: value for key, value in spec.items() if key not in ("type", "level")}
    return factory(**options)


def setup_logging(level: str = "INFO", consumers: list[dict[str, Any]] | None = None) -> list[str]:
    """Replace loguru's default sink with the configured consumers.

    Each entry in ``consumers`` names a ``type`` (``console`` or ``file``), an
    optional ``level`` overriding the global one, and consumer options such as
    ``path``. Returns a description of each consumer that was registered.
    """
    logger.remove()
    registered: list[str] = []
    for spec in DEFAULT_CONSUMERS if consumers is None else consumers:
        consumer = _create_consumer(spec)
        if consumer is None:
            continue
        consumer_level = spec.get("level", level)
        consumer.register(consumer_level)
        registered.append(consumer.describe(consumer_level))

    intercept_stdlib_logging(level)
    return registered
