"""Runtime configuration for litestar-dataflows."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = ["DataflowsConfig"]


@dataclass(frozen=True)
class DataflowsConfig:
    """Engine-wide settings, built once and shared read-only.

    Attributes:
        timezone: IANA timezone cron schedules are evaluated in.
        concurrent_branches: Whether steps that become ready together run
            concurrently with ``asyncio.gather``. Execution order within a
            branch is unchanged either way.
        run_history: Number of completed runs the engine keeps for
            inspection. Older completed runs are forgotten first.
    """

    timezone: str = "UTC"
    concurrent_branches: bool = False
    run_history: int = 100
