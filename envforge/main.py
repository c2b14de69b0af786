from __future__ import annotations

import argparse
import logging
import os
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

from . import __version__
from .bundle import load_bundle, resolve_bundle_path
from .config import DEFAULT_HOME, EngineConfig, load_config
from .engine import Engine, RunOptions, RunReport
from .errors import EnvForgeError, ParseError
from .logging_utils import configure_logging
from .resolver import format_plan
from .state_store import StateStore
from .upgrade import UpgradeResolver

logger = logging.getLogger(__name__)


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    cached = getattr(args, "engine_config", None)
    if cached is not None:
        return cached
    home = args.home or os.environ.get("ENVFORGE_HOME") or DEFAULT_HOME
    return load_config(args.config, home=home)


def _print_report(report: RunReport) -> None:
    if report.plan is not None and report.plan.skipped:
        print(f"Skipped (skip: true): {', '.join(report.plan.skipped)}")
    for o in report.outcomes:
        line = f"  {o.outcome.value:<18} {o.tool}"
        if o.detail:
            line += f" ({o.detail})"
        print(line)


def run_install(config: EngineConfig, bundle_arg: str, options: RunOptions) -> RunReport:
    """Load the bundle, run it, and print what happened."""

    path = resolve_bundle_path(bundle_arg, config.bundles_dir)
    engine = Engine.from_config(config)

    bundle = load_bundle(path)
    try:
        report = engine.run(bundle, options)
    except Exception:
        # Typed failures come back inside the report; anything else is a crash.
        logger.exception("env-forge crashed while running bundle %s", bundle.name)
        raise

    if options.list_only and report.plan is not None:
        print(f"Bundle {report.bundle} (execution order):")
        if report.plan.order:
            print(format_plan(report.plan.order))
        else:
            print("  (no tools)")
    else:
        _print_report(report)
    return report


def cmd_install(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    options = RunOptions(
        force=bool(args.force),
        dry_run=bool(args.dry_run),
        list_only=bool(args.list),
        reset_state=bool(args.reset),
    )
    report = run_install(config, args.bundle, options)
    return 0 if report.ok else 1


def cmd_list(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    report = run_install(config, args.bundle, RunOptions(list_only=True))
    return 0 if report.ok else 1


def cmd_reset(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    store = StateStore(config.state_dir)
    if not args.bundle:
        # Every bundle's lock, so no running install loses its markers midway.
        with ExitStack() as stack:
            for name in store.bundles():
                stack.enter_context(store.lock(name))
            store.reset()
        return 0

    # Accept a bundle file/name as for install, or a bare bundle name whose
    # file is gone.
    path = resolve_bundle_path(args.bundle, config.bundles_dir)
    name = Path(args.bundle).stem
    if path.is_file():
        name = load_bundle(path).name
    with store.lock(name):
        store.reset(name)
    return 0


def cmd_upgrade(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    resolver = UpgradeResolver(
        config.home,
        versions_url=config.versions_url,
        remote=config.remote,
        branch=config.branch,
    )
    resolver.upgrade(args.version)
    print("Restart your shell to pick up the new version.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="envforge")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--home", default=None, help="env-forge home (default: $ENVFORGE_HOME or ~/.env-forge)")
    p.add_argument("--config", default=None, help="YAML config overriding paths under home")
    p.add_argument("--log", default=None, help="Log file (default: <home>/logs/envforge.log)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("install", help="Install a bundle")
    sp.add_argument("bundle", help="Bundle file or name under <home>/bundles")
    sp.add_argument("--force", action="store_true", help="Re-run tools even if marked completed")
    sp.add_argument("--dry-run", action="store_true", help="Show what would run; change nothing")
    sp.add_argument("--list", action="store_true", help="Print the execution order and exit")
    sp.add_argument("--reset", action="store_true", help="Clear this bundle's state before running")
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("list", help="Print a bundle's execution order")
    sp.add_argument("bundle")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("reset", help="Clear completion state (one bundle, or all)")
    sp.add_argument("bundle", nargs="?", default=None)
    sp.set_defaults(func=cmd_reset)

    sp = sub.add_parser("upgrade", help="Upgrade env-forge (latest|VERSION, or choose interactively)")
    sp.add_argument("version", nargs="?", default=None)
    sp.set_defaults(func=cmd_upgrade)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    try:
        config = _config_from_args(args)
    except (ValueError, FileNotFoundError) as e:
        logger.error("Invalid configuration: %s", e)
        return 1
    args.engine_config = config
    configure_logging(
        log_path=args.log or config.log_path,
        level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        return int(args.func(args))
    except ParseError as e:
        logger.error("Invalid bundle: %s", e)
        return 1
    except EnvForgeError as e:
        logger.error("%s", e)
        return 1
    except (ValueError, FileNotFoundError) as e:
        # Bad config values or tool scripts claiming the same id.
        logger.error("%s", e)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
