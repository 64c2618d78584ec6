"""Per-target watch loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Protocol

import structlog

from .prober import ProbeResult


logger = structlog.get_logger(__name__)

Prober = Callable[[str, float], Awaitable[ProbeResult]]


class Notifier(Protocol):
    async def notify_down(self, target: str, time_checked: datetime | None = None) -> bool: ...


class Watcher:
    """Probes one target every ``interval`` seconds until its stop signal is set."""

    def __init__(
        self,
        target: str,
        stop_signal: asyncio.Event,
        *,
        interval: float,
        timeout: float,
        prober: Prober,
        notifier: Notifier,
    ):
        self.target = target
        self.stop_signal = stop_signal
        self.interval = interval
        self.timeout = timeout
        self.prober = prober
        self.notifier = notifier

        self.probe_count = 0
        self.down_count = 0
        self.last_checked: Optional[datetime] = None
        self.last_ok: Optional[bool] = None
        self.stopped = False

    async def run(self) -> None:
        logger.debug("Watcher started", target=self.target, interval=self.interval)
        try:
            while True:
                try:
                    await asyncio.wait_for(self.stop_signal.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    await self._safe_cycle()
                    continue
                logger.debug("Stopping watcher", target=self.target)
                return
        finally:
            self.stopped = True

    async def _safe_cycle(self) -> None:
        try:
            await self.run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Watch cycle failed", target=self.target)

    async def run_cycle(self) -> bool:
        """Probe once and notify if the target is unreachable. Returns the probe outcome."""
        result = await self.prober(self.target, self.timeout)
        now = datetime.now(timezone.utc)
        self.probe_count += 1
        self.last_checked = now
        self.last_ok = result.ok
        if result.ok:
            return True

        logger.debug("Probe failed", target=self.target, error=result.error, elapsed_ms=result.elapsed_ms)
        self.down_count += 1
        await self.notifier.notify_down(self.target, now)
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "running": not self.stopped,
            "probe_count": self.probe_count,
            "down_count": self.down_count,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
            "last_ok": self.last_ok,
        }


@dataclass
class WatchHandle:
    """Pairs a target with its stop signal and the task watching it."""

    target: str
    stop_signal: asyncio.Event = field(default_factory=asyncio.Event)
    watcher: Optional[Watcher] = None
    task: Optional["asyncio.Task[None]"] = None

    def signal_stop(self) -> None:
        # Never blocks; the signal stays pending until the task reaches its wait point.
        self.stop_signal.set()

    @property
    def done(self) -> bool:
        return self.task is None or self.task.done()
