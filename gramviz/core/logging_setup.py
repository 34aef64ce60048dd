"""Logging configuration for CLI and service runs.

Console output stays terse; when a run directory is given the full DEBUG stream goes
to ``gramviz.log`` and warnings/errors are duplicated into ``errors.log``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(
    log_dir: Optional[Path] = None,
    level: Union[int, str] = logging.INFO,
    name: str = "gramviz",
) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
    logger.addHandler(console)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        full = logging.FileHandler(log_dir / "gramviz.log", encoding="utf-8")
        full.setLevel(logging.DEBUG)
        full.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(full)

        errors = logging.FileHandler(log_dir / "errors.log", encoding="utf-8")
        errors.setLevel(logging.WARNING)
        errors.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(errors)

    return logger
