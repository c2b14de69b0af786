from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

from .errors import UpgradeResolutionError
from .lib.command import CmdResult, run_cmd
from .lib.net import fetch_text

logger = logging.getLogger(__name__)


def parse_versions(text: str) -> List[str]:
    return [ln.strip() for ln in text.splitlines() if ln.strip()]


class UpgradeResolver:
    """Moves an env-forge checkout to a released version.

    The published versions manifest is a text file with one version per line;
    the last non-empty line is the latest release.
    """

    def __init__(
        self,
        home: str | Path,
        *,
        versions_url: str,
        remote: str = "origin",
        branch: str = "master",
        runner: Callable[..., CmdResult] = run_cmd,
        fetch: Callable[[str], Optional[str]] = fetch_text,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self.home = Path(home)
        self.versions_url = versions_url
        self.remote = remote
        self.branch = branch
        self.runner = runner
        self.fetch = fetch
        self.prompt = prompt

    def _git(self, *args: str) -> CmdResult:
        return self.runner(["git", "-C", str(self.home), *args], check=False)

    def _ref_exists(self, ref: str) -> bool:
        return self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").ok

    def available_versions(self) -> List[str]:
        text = self.fetch(self.versions_url)
        if text is None:
            raise UpgradeResolutionError(
                "manifest_unreachable", f"Failed to read versions manifest from {self.versions_url}"
            )
        versions = parse_versions(text)
        if not versions:
            raise UpgradeResolutionError(
                "manifest_empty", f"No versions found in manifest at {self.versions_url}"
            )
        return versions

    def choose_target(self, target: Optional[str], versions: List[str]) -> str:
        latest = versions[-1]
        if not target:
            print("Available versions:")
            for v in versions:
                print(f"  {v}")
            answer = self.prompt(f"Enter version to install (default: {latest}): ").strip()
            return answer or latest
        if target == "latest":
            return latest
        return target

    def resolve_ref(self, target: str) -> str:
        if not target.startswith("v") and self._ref_exists(f"v{target}"):
            target = f"v{target}"
        if not self._ref_exists(target):
            raise UpgradeResolutionError(
                "reference_not_found", f"Version '{target}' not found in repository"
            )
        return target

    def upgrade(self, target: Optional[str] = None) -> str:
        """Check out ``target`` ("latest", a version, or None to ask). Returns the ref."""

        logger.info("Starting env-forge upgrade in %s", self.home)

        if not self._git("rev-parse", "--git-dir").ok:
            raise UpgradeResolutionError(
                "not_a_repository",
                f"env-forge installation at {self.home} is not a git repository; reinstall to upgrade",
            )

        logger.info("Fetching latest updates from %s/%s", self.remote, self.branch)
        if not self._git("fetch", self.remote, self.branch, "--quiet").ok:
            raise UpgradeResolutionError("fetch_failed", "Failed to fetch updates from remote repository")

        versions = self.available_versions()
        chosen = self.choose_target(target, versions)

        if not self._git("fetch", "--tags", "--quiet").ok:
            logger.warning("Failed to fetch tags, continuing with local tags")

        ref = self.resolve_ref(chosen)

        logger.info("Upgrading to version %s", ref)
        if not self._git("checkout", ref, "--quiet").ok:
            raise UpgradeResolutionError(
                "checkout_blocked",
                f"Failed to checkout {ref}; commit or stash local changes first",
            )

        logger.info("Upgraded to version %s", ref)
        return ref
