"""Background scoring trigger.

When ``SCORING_MODE=background`` submissions are stored without being scored
and this worker picks them up. Delivery is at-least-once: an item may be swept
again before its first result lands, which is harmless because applying a
score is idempotent.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from civic_guard.core.settings import Settings, settings
from civic_guard.db.session import SessionLocal
from civic_guard.models import ModerationItem
from civic_guard.models.item import UNSCORED_STATUSES
from civic_guard.services.errors import ModerationError
from civic_guard.services.pipeline import ModerationPipeline

logger = logging.getLogger(__name__)


@dataclass
class ScoringSweepState:
    """Counters kept across sweeps for operators."""

    sweeps: int = 0
    scored: int = 0
    errors: int = 0


class ScoringWorker:
    """Periodically scores every item still waiting on an automated decision."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        config: Settings = settings,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.state = ScoringSweepState()
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop and wait for the current sweep."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        interval = max(0.1, float(self.config.scoring_sweep_interval_seconds))

        while not self._stopping.is_set():
            try:
                await asyncio.to_thread(self.sweep_once)
            except SQLAlchemyError as e:
                logger.warning("ScoringWorker encountered database error: %s", e)
                await asyncio.sleep(min(interval * 4, 30.0))
                continue
            except (ValueError, TypeError, KeyError, AttributeError, OSError) as e:
                logger.error("ScoringWorker sweep failed: %s", e, exc_info=True)
                self.state.errors += 1
                await asyncio.sleep(min(interval * 4, 30.0))
                continue

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                pass

    def sweep_once(self) -> int:
        """Score one batch of pending items and return how many were processed."""
        with self.session_factory() as db:
            return self.sweep(db)

    def sweep(self, db: Session) -> int:
        pending_ids = [
            item_id
            for (item_id,) in db.query(ModerationItem.id)
            .filter(ModerationItem.status.in_(UNSCORED_STATUSES))
            .order_by(ModerationItem.created_at)
            .limit(self.config.scoring_sweep_batch_size)
            .all()
        ]
        self.state.sweeps += 1
        if not pending_ids:
            return 0
        logger.debug("Found %d items awaiting scoring", len(pending_ids))

        pipeline = ModerationPipeline(db, config=self.config)
        processed = 0
        for item_id in pending_ids:
            try:
                pipeline.request_scoring(item_id)
            except ModerationError as e:
                db.rollback()
                self.state.errors += 1
                logger.warning("Could not score item %s: %s", item_id, e)
                continue
            processed += 1

        self.state.scored += processed
        logger.info("Scoring sweep processed %d of %d items", processed, len(pending_ids))
        return processed
