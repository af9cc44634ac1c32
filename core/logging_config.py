"""Application-wide logging configuration utilities."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

_CONFIGURED = False
_LOG_PATH: Optional[Path] = None
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_path: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Configure the root logger for the battery log backend.

    Parameters
    ----------
    level:
        The minimum logging level for the root logger, either a ``logging``
        constant or its name (``"DEBUG"``, ``"INFO"``...).
    log_path:
        Optional file that receives a copy of every record in addition to the
        console stream.

    Returns
    -------
    pathlib.Path or None
        The path to the log file when one is configured.
    """

    global _CONFIGURED, _LOG_PATH

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.setLevel(level)
    else:
        root_logger.setLevel(min(root_logger.level or level, level))

    formatter = logging.Formatter(_FORMAT)

    if not _CONFIGURED:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root_logger.addHandler(stream_handler)
        _CONFIGURED = True

    if log_path is not None:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        already_configured = any(
            isinstance(handler, logging.FileHandler)
            and getattr(handler, "baseFilename", None) == str(path.resolve())
            for handler in root_logger.handlers
        )
        if not already_configured:
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        _LOG_PATH = path

    root_logger.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(level), _LOG_PATH)
    return _LOG_PATH
