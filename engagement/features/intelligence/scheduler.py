"""
Intelligence scheduler.

One cancellable asyncio task per tracked session re-runs the pipeline on a
fixed cadence, caches the latest snapshot and fans it out to subscribers.

Invariants:
- The registry is owned by the scheduler instance; nothing is module-global
- Each tracking generation has an epoch; stop bumps it, and results carrying
  an older epoch are dropped before caching and before every delivery
- Ticks for one session run sequentially in one task, so a snapshot older
  than the cached one is never cached or delivered
- The cache has a single writer (the owning task) and any number of readers
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from engagement.core.config import settings
from engagement.core.logging import log_event, session_context
from engagement.core.metrics import intelligence_ticks_total, intelligence_tracked_sessions
from engagement.features.intelligence.service import IntelligenceService, build_degraded_intelligence
from engagement.models.intelligence import SessionIntelligence
from engagement.realtime.hub import SessionHub, Subscriber


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class TrackedSession:
    session_id: str
    epoch: int
    started_at: datetime
    task: Optional[asyncio.Task] = None
    cached: Optional[SessionIntelligence] = None


class TrackingRegistry:
    """
    Per-session tracking state keyed by session id.

    Epoch counters outlive a stop, so a restarted session never reuses an
    epoch from an earlier generation.
    """

    def __init__(self):
        self._sessions: Dict[str, TrackedSession] = {}
        self._epochs: Dict[str, int] = {}

    def begin(self, session_id: str, started_at: datetime) -> TrackedSession:
        epoch = self._epochs.get(session_id, 0) + 1
        self._epochs[session_id] = epoch
        tracked = TrackedSession(session_id=session_id, epoch=epoch, started_at=started_at)
        self._sessions[session_id] = tracked
        return tracked

    def end(self, session_id: str) -> Optional[TrackedSession]:
        """Forget the session; its epoch stops being current."""
        return self._sessions.pop(session_id, None)

    def get(self, session_id: str) -> Optional[TrackedSession]:
        return self._sessions.get(session_id)

    def is_tracked(self, session_id: str) -> bool:
        return session_id in self._sessions

    def is_current(self, session_id: str, epoch: int) -> bool:
        tracked = self._sessions.get(session_id)
        return tracked is not None and tracked.epoch == epoch

    def store(self, session_id: str, epoch: int, intelligence: SessionIntelligence) -> bool:
        """
        Cache a snapshot if it belongs to the live epoch and is not older
        than what is cached.

        Returns:
            True if cached
        """
        tracked = self._sessions.get(session_id)
        if tracked is None or tracked.epoch != epoch:
            return False
        if tracked.cached is not None and intelligence.last_updated < tracked.cached.last_updated:
            return False
        tracked.cached = intelligence
        return True

    def cached(self, session_id: str) -> Optional[SessionIntelligence]:
        tracked = self._sessions.get(session_id)
        return tracked.cached if tracked is not None else None

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)


class IntelligenceScheduler:
    """Owns the tracking registry and the per-session tasks."""

    def __init__(
        self,
        service: IntelligenceService,
        hub: Optional[SessionHub] = None,
        interval_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.service = service
        self.hub = hub or SessionHub()
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None else settings.INTELLIGENCE_INTERVAL_SECONDS
        )
        self.clock = clock
        self.registry = TrackingRegistry()

    async def start(self, session_id: str, on_update: Optional[Subscriber] = None) -> int:
        """
        Start tracking a session, or add a subscriber if it is already tracked.

        The first evaluation runs immediately, then every interval_seconds.

        Returns:
            The live epoch for the session
        """
        if on_update is not None:
            await self.hub.subscribe(session_id, on_update)

        tracked = self.registry.get(session_id)
        if tracked is not None:
            return tracked.epoch

        tracked = self.registry.begin(session_id, self.clock())
        tracked.task = asyncio.create_task(
            self._run(session_id, tracked.epoch),
            name=f"intelligence:{session_id}:{tracked.epoch}",
        )
        intelligence_tracked_sessions.set(len(self.registry))
        log_event(
            "info",
            "Intelligence tracking started",
            session_id=session_id,
            event_type="intelligence.started",
            extra={"epoch": tracked.epoch, "interval_seconds": self.interval_seconds},
        )
        return tracked.epoch

    async def stop(self, session_id: str) -> bool:
        """
        Stop tracking: cancel the task, invalidate the epoch, drop the cache
        and the subscribers.

        Returns:
            True if the session was being tracked
        """
        tracked = self.registry.end(session_id)
        await self.hub.close_room(session_id)
        intelligence_tracked_sessions.set(len(self.registry))
        if tracked is None:
            return False

        task = tracked.task
        if task is not None and not task.done():
            task.cancel()
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        log_event(
            "info",
            "Intelligence tracking stopped",
            session_id=session_id,
            event_type="intelligence.stopped",
            extra={"epoch": tracked.epoch},
        )
        return True

    async def stop_all(self) -> None:
        for session_id in self.registry.session_ids():
            await self.stop(session_id)

    def get_cached(self, session_id: str) -> Optional[SessionIntelligence]:
        return self.registry.cached(session_id)

    def is_tracking(self, session_id: str) -> bool:
        return self.registry.is_tracked(session_id)

    async def tick(self, session_id: str, epoch: int) -> Optional[SessionIntelligence]:
        """
        Run one evaluation for a tracked session.

        Returns:
            The snapshot if it was cached and published, None if it was stale
        """
        tracked = self.registry.get(session_id)
        if tracked is None or tracked.epoch != epoch:
            return None

        now = self.clock()
        try:
            intelligence = await asyncio.to_thread(
                self.service.generate,
                session_id,
                now,
                epoch,
                tracked.started_at,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_event(
                "error",
                "Intelligence pipeline failed",
                session_id=session_id,
                event_type="intelligence.tick",
                error_code=type(e).__name__,
                extra={"error": e},
                exc_info=True,
            )
            intelligence = build_degraded_intelligence(session_id, now, epoch)

        if not self.registry.store(session_id, epoch, intelligence):
            intelligence_ticks_total.inc({"outcome": "stale"})
            return None

        outcome = "degraded" if intelligence.degraded else "ok"
        intelligence_ticks_total.inc({"outcome": outcome})
        delivered = await self.hub.publish(
            session_id,
            intelligence,
            should_deliver=lambda: self.registry.is_current(session_id, epoch),
        )
        log_event(
            "info",
            "Intelligence tick",
            session_id=session_id,
            event_type="intelligence.tick",
            extra={"epoch": epoch, "outcome": outcome, "delivered": delivered},
        )
        return intelligence

    async def _run(self, session_id: str, epoch: int) -> None:
        with session_context(session_id):
            while self.registry.is_current(session_id, epoch):
                try:
                    await self.tick(session_id, epoch)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    # Computation must never end the loop
                    log_event(
                        "error",
                        "Intelligence tick crashed",
                        session_id=session_id,
                        event_type="intelligence.tick",
                        error_code=type(e).__name__,
                        exc_info=True,
                    )
                await asyncio.sleep(self.interval_seconds)
