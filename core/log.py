"""
core/log.py -- Process-wide logging setup.

Every module logs through a named stdlib logger under the "cra." namespace
(cra.api, cra.auth, cra.audit, cra.config, cra.cli). configure_logging() is
called once by the app factory and the CLI; it installs the console format and,
when LOG_DIR is set, two size-rotated files:

  app.log    -- everything at LOG_LEVEL and above
  error.log  -- ERROR and above only

Never log passwords, password hashes, or raw tokens. Log user ids and emails.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from core.config import Settings

_FORMAT = "%(asctime)s %(levelname)-5s %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 5


def configure_logging(settings: Settings) -> None:
    """Configure the root "cra" logger from settings. Safe to call repeatedly."""
    logging.basicConfig(level=settings.log_level.upper(), format=_FORMAT, datefmt=_DATEFMT)

    root = logging.getLogger("cra")
    root.setLevel(settings.log_level.upper())

    if not settings.log_dir:
        return

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    existing = {getattr(h, "baseFilename", None) for h in root.handlers}
    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)

    for filename, level in (("app.log", logging.NOTSET), ("error.log", logging.ERROR)):
        path = str((log_dir / filename).resolve())
        if path in existing:
            continue
        handler = RotatingFileHandler(path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)
