from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FILENAME = "envforge.log"


def configure_logging(
    log_path: str | Path,
    level: int = logging.INFO,
    also_console: bool = True,
) -> str:
    """Configure root logging: file handler plus optional console handler.

    If ``log_path`` cannot be opened (read-only home, missing permissions)
    the log goes to ``./envforge.log`` instead. Returns the file actually used.
    """

    logger = logging.getLogger()
    logger.setLevel(level)

    # Avoid duplicate handlers if configure_logging() is called multiple times.
    if getattr(logger, "_envforge_configured", False):
        return getattr(logger, "_envforge_log_path", str(log_path))

    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )

    chosen_path = str(log_path)
    file_handler: Optional[logging.Handler] = None
    try:
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(chosen_path)
    except OSError:
        chosen_path = str(Path.cwd() / LOG_FILENAME)
        file_handler = logging.FileHandler(chosen_path)
    file_handler.setFormatter(fmt)
    logger.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(console)

    setattr(logger, "_envforge_configured", True)
    setattr(logger, "_envforge_log_path", chosen_path)

    logging.getLogger(__name__).debug(
        "Logging initialized (requested=%s, actual=%s)", log_path, chosen_path
    )
    return chosen_path
