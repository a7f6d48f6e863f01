"""
dispatcher.py — Queue-backed delivery of activity events.

Write path:
    service  ──notify()──▶  session.info (staged)
    commit   ──after_commit hook──▶  ActivityDispatcher queue
    worker   ──handler(event)──▶  activities table (own app context + session)

A rolled-back transaction discards its staged events, so nothing is announced
for a write that never happened. Delivery failures stay inside the worker:
they are logged and the worker moves on to the next event. The request that
produced the event has already returned by then.

Registered like the other Flask extensions:

    activity_dispatcher = ActivityDispatcher()          # extensions.py
    activity_dispatcher.init_app(app, handler=deliver)  # app factory
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Callable

from sqlalchemy import event as sa_event
from sqlalchemy.orm import Session

from settleup.app.events import ActivityEvent

logger = logging.getLogger(__name__)

_STAGED_KEY = "settleup.staged_activity"


def _release_staged(session: Session) -> None:
    staged = session.info.pop(_STAGED_KEY, None)
    if not staged:
        return
    for dispatcher, activity_event in staged:
        dispatcher.publish(activity_event)


def _discard_staged(session: Session) -> None:
    staged = session.info.pop(_STAGED_KEY, None)
    if staged:
        logger.debug("Discarded %d staged activity event(s) on rollback.", len(staged))


def _install_session_hooks() -> None:
    """Idempotent — the hooks are module-level functions on the Session class."""
    if not sa_event.contains(Session, "after_commit", _release_staged):
        sa_event.listen(Session, "after_commit", _release_staged)
    if not sa_event.contains(Session, "after_rollback", _discard_staged):
        sa_event.listen(Session, "after_rollback", _discard_staged)


class ActivityDispatcher:

    def __init__(self) -> None:
        self._app = None
        self._handler: Callable[[ActivityEvent], None] | None = None
        self._queue: queue.Queue | None = None
        self._worker: threading.Thread | None = None
        self._stopping = threading.Event()

    def init_app(self, app, handler: Callable[[ActivityEvent], None]) -> None:
        self._app = app
        self._handler = handler
        self._queue = queue.Queue(maxsize=app.config.get("ACTIVITY_QUEUE_MAXSIZE", 1000))
        app.extensions["activity_dispatcher"] = self
        _install_session_hooks()

        if app.config.get("ACTIVITY_WORKER_ENABLED", True):
            self.start()

    # ── Producer side ──────────────────────────────────────────────────────

    def stage(self, session: Session, activity_event: ActivityEvent) -> None:
        """Holds the event on the session until its transaction commits."""
        session.info.setdefault(_STAGED_KEY, []).append((self, activity_event))

    def publish(self, activity_event: ActivityEvent) -> bool:
        """Enqueues without blocking. Returns False when the event was dropped."""
        if self._queue is None:
            logger.warning(
                "Activity dispatcher not initialised; dropping %s event.",
                activity_event.kind.value,
            )
            return False
        try:
            self._queue.put_nowait(activity_event)
        except queue.Full:
            logger.warning(
                "Activity queue full (%d); dropping %s event from user %s.",
                self._queue.maxsize,
                activity_event.kind.value,
                activity_event.actor_id,
            )
            return False
        return True

    # ── Consumer side ──────────────────────────────────────────────────────

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def process_pending(self) -> int:
        """Delivers every queued event on the calling thread. Returns the count delivered."""
        delivered = 0
        if self._queue is None:
            return delivered
        while True:
            try:
                activity_event = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            try:
                if self._deliver(activity_event):
                    delivered += 1
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stopping.clear()
        self._worker = threading.Thread(
            target=self._run,
            name="activity-dispatcher",
            daemon=True,
        )
        self._worker.start()
        logger.info("Activity dispatcher worker started.")

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stopping.set()
        if self._worker is not None:
            self._worker.join(timeout)
            self._worker = None

    def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                activity_event = self._queue.get(timeout=0.5)
            except queue.Empty:
                continue
            try:
                self._deliver(activity_event)
            finally:
                self._queue.task_done()

    def _deliver(self, activity_event: ActivityEvent) -> bool:
        # The app context gives the handler its own scoped session, which
        # Flask-SQLAlchemy removes (rolling back anything uncommitted) on exit.
        with self._app.app_context():
            try:
                self._handler(activity_event)
            except Exception:
                logger.exception(
                    "Failed to deliver %s activity from user %s.",
                    activity_event.kind.value,
                    activity_event.actor_id,
                )
                return False
        return True
