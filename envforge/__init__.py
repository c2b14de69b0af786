"""env-forge: dependency-ordered, resumable machine provisioning.

Core design goals:
- Deterministic execution plans from declarative bundles
- Cycles and dangling dependencies rejected before anything runs
- Fail-fast tool lifecycle (pre_install -> install -> post_install)
- Durable per-tool completion markers for resume/idempotency
"""

__version__ = "1.2.0"

__all__ = ["__version__"]
