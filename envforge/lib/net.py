from __future__ import annotations

import logging
import shutil
from typing import Callable, Optional

from .command import CmdResult, run_cmd

logger = logging.getLogger(__name__)


def fetch_text(
    url: str,
    *,
    runner: Callable[..., CmdResult] = run_cmd,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[str]:
    """Fetch a URL body with curl (or wget). Returns None if unreachable."""

    if which("curl"):
        argv = ["curl", "-fsSL", url]
    elif which("wget"):
        argv = ["wget", "-qO-", url]
    else:
        logger.error("Neither curl nor wget found; cannot fetch %s", url)
        return None

    r = runner(argv, check=False)
    if r.returncode != 0:
        logger.warning("Fetching %s failed (%d)", url, r.returncode)
        return None
    return r.stdout
