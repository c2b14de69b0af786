from __future__ import annotations

import errno
import fcntl
import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Set

from .errors import StateLockedError

logger = logging.getLogger(__name__)

_LOCK_SUFFIX = ".lock"


class StateStore:
    """Per-bundle completion markers on disk.

    Layout::

        <state_dir>/<bundle>/<tool>     empty marker, present = completed
        <state_dir>/.<bundle>.lock      advisory lock held during a run
    """

    def __init__(self, state_dir: str | Path) -> None:
        self.state_dir = Path(state_dir)

    def bundle_dir(self, bundle: str) -> Path:
        return self.state_dir / bundle

    def is_completed(self, bundle: str, tool: str) -> bool:
        return (self.bundle_dir(bundle) / tool).is_file()

    def mark_completed(self, bundle: str, tool: str) -> None:
        d = self.bundle_dir(bundle)
        d.mkdir(parents=True, exist_ok=True)
        (d / tool).touch(exist_ok=True)

    def completed(self, bundle: str) -> Set[str]:
        d = self.bundle_dir(bundle)
        if not d.is_dir():
            return set()
        return {p.name for p in d.iterdir() if p.is_file()}

    def bundles(self) -> List[str]:
        """Bundles that have a state directory."""
        if not self.state_dir.is_dir():
            return []
        return sorted(p.name for p in self.state_dir.iterdir() if p.is_dir())

    def reset(self, bundle: Optional[str] = None) -> bool:
        """Remove markers for one bundle, or for all bundles if ``bundle`` is None.

        Lock files are never removed: a run holding one must keep excluding
        later runs. Returns False when there was nothing to remove.
        """

        if bundle is not None:
            d = self.bundle_dir(bundle)
            if not d.is_dir():
                logger.info("No state found for bundle: %s", bundle)
                return False
            shutil.rmtree(d)
            logger.info("State cleared for bundle: %s", bundle)
            return True

        names = self.bundles()
        if not names:
            logger.info("No state found")
            return False
        for name in names:
            shutil.rmtree(self.bundle_dir(name))
        logger.info("All state cleared (%s)", ", ".join(names))
        return True

    @contextmanager
    def lock(self, bundle: str) -> Iterator[None]:
        """Hold an exclusive, non-blocking lock on ``bundle`` for the context.

        A second holder gets StateLockedError straight away instead of waiting.
        """

        self.state_dir.mkdir(parents=True, exist_ok=True)
        lock_path = self.state_dir / f".{bundle}{_LOCK_SUFFIX}"
        with lock_path.open("a+", encoding="utf-8") as handle:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except OSError as e:
                if e.errno in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                    raise StateLockedError(bundle) from e
                raise
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
