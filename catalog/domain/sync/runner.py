#!/usr/bin/env python
"""
Single-flight background sync runner.

Runs one orchestrator at a time on a daemon thread inside the Flask
application context, bounded by a wall-clock cancel token.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from catalog.database.db_manager import utcnow
from catalog.utils.cancellation import CancellationRequested, CancelToken

logger = logging.getLogger(__name__)


class BackgroundSyncRunner:
    def __init__(self, flask_app, orchestrator_factory: Callable[[], Any], timeout_seconds: float = 180.0):
        self.flask_app = flask_app
        self.orchestrator_factory = orchestrator_factory
        self.timeout_seconds = timeout_seconds
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._token: Optional[CancelToken] = None
        self._last_run: Optional[Dict[str, Any]] = None

    def start(self, artists: Optional[Iterable[str]] = None) -> bool:
        """Launch a sync unless one is already running; returns whether it started."""
        with self._lock:
            if self.is_running():
                logger.info("Sync already running; ignoring new request")
                return False
            names: Optional[List[str]] = list(artists) if artists else None
            self._token = CancelToken.with_timeout(self.timeout_seconds)
            self._last_run = {"status": "running", "startedAt": utcnow().isoformat()}
            self._thread = threading.Thread(
                target=self._worker, args=(names, self._token), name="catalog-sync", daemon=True
            )
            self._thread.start()
            return True

    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def last_run(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return dict(self._last_run) if self._last_run else None

    def cancel(self, reason: str = "cancelled by request") -> bool:
        with self._lock:
            if not self.is_running() or self._token is None:
                return False
            self._token.cancel(reason)
            return True

    def join(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is not None:
            thread.join(timeout)

    def _worker(self, names: Optional[List[str]], token: CancelToken) -> None:
        try:
            if self.flask_app is not None:
                # DB session and current_app need an application context
                with self.flask_app.app_context():
                    self._run(names, token)
            else:
                self._run(names, token)
        finally:
            token.dispose()

    def _run(self, names: Optional[List[str]], token: CancelToken) -> None:
        orchestrator = None
        summary: Dict[str, Any]
        try:
            orchestrator = self.orchestrator_factory()
            run = orchestrator.run(names, cancel=token)
            summary = run.summary()
        except CancellationRequested as exc:
            logger.warning("Background sync stopped: %s", exc)
            summary = self._summary_from(orchestrator, "cancelled", str(exc))
        except Exception as exc:
            logger.error("Background sync failed: %s", exc, exc_info=True)
            summary = self._summary_from(orchestrator, "failed", str(exc))
        with self._lock:
            self._last_run = summary

    @staticmethod
    def _summary_from(orchestrator, status: str, error: str) -> Dict[str, Any]:
        run = getattr(orchestrator, "last_run", None)
        if run is not None:
            summary = run.summary()
        else:
            summary = {"finishedAt": utcnow().isoformat()}
        summary["status"] = status
        summary["error"] = error
        return summary


__all__ = ["BackgroundSyncRunner"]
