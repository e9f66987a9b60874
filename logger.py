"""
logger.py
---------
Logging for migration runs.

Every module logs through a child of the ``forum_migration`` logger
(``get_logger(__name__)``). A run is long and mostly repetitive, so the
console only shows ``LOG_LEVEL`` and above (chunk progress, skipped rows,
failed files) while ``LOG_FILE``, when set, receives the full DEBUG trail
including every short chunk and dropped association.

Messages emitted while a data type is being migrated go through
:func:`for_data_type`, which prefixes them with the data type so that a
log of a full forum export can be grepped per pass::

    2024-05-01T10:12:03 [INFO    ] forum_migration.pipeline.driver: [thread] finished: 3 exported, 2 imported, 1 already mapped.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping

from config import CONFIG, get_log_level

_ROOT_LOGGER_NAME = "forum_migration"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_configured = False


class DataTypeAdapter(logging.LoggerAdapter):
    """Prefixes messages with the data type of the current pass."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['data_type']}] {msg}", kwargs


def configure_logging(level: int | None = None, log_file: str | None = None) -> logging.Logger:
    """
    Install the console and (optional) file handler on the run logger.

    Only the first call has an effect; the module calls it on import with
    the values from :data:`config.CONFIG`.

    Args:
        level:    Console threshold; ``LOG_LEVEL`` when omitted.
        log_file: DEBUG log destination; ``LOG_FILE`` when omitted.
    """
    global _configured
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    if _configured:
        return root
    _configured = True

    # The logger itself passes everything; each handler applies its own threshold.
    root.setLevel(logging.DEBUG)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level if level is not None else get_log_level())
    console.setFormatter(logging.Formatter(fmt=_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(console)

    target = log_file or CONFIG.migration.log_file
    if target:
        log_path = Path(target)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            trail = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as exc:
            root.warning("Run log '%s' unavailable, logging to console only: %s", log_path, exc)
        else:
            trail.setLevel(logging.DEBUG)
            trail.setFormatter(logging.Formatter(fmt=_FILE_FORMAT, datefmt=_DATE_FORMAT))
            root.addHandler(trail)
    return root


configure_logging()


def get_logger(name: str) -> logging.Logger:
    """Child of the run logger, e.g. ``forum_migration.pipeline.driver``."""
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def for_data_type(log: logging.Logger, data_type: str) -> DataTypeAdapter:
    """
    Wrap *log* so every message names the data type being migrated.

    Example::

        dt_log = for_data_type(log, "post.attachment")
        dt_log.info("%d rows to export", total)   # "[post.attachment] 812 rows to export"
    """
    return DataTypeAdapter(log, {"data_type": data_type})
