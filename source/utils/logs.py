"""Logging setup."""
import logging
from dataclasses import dataclass
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


@dataclass
class LogsConfig:
    """LogsConfig."""

    level: str = "INFO"
    format: str = DEFAULT_LOG_FORMAT
    file: Optional[str] = None


def init_logs(config: LogsConfig) -> None:
    """Configure root logger."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file is not None:
        handlers.append(logging.FileHandler(config.file))
    logging.basicConfig(level=config.level.upper(), format=config.format, handlers=handlers, force=True)
