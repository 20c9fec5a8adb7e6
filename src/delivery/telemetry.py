"""
Session Telemetry Reporter.

Periodically pushes a snapshot of the student's lesson progress to the session
persistence endpoint (SDSM):
- Completed lessons with their score and grade
- Active lessons with elapsed time
- Timestamp (epoch milliseconds)

Runs in a background thread. Unchanged snapshots that were already acknowledged
are not re-sent; failed sends are retried on the next tick.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from config import get_settings
from src.lessons.errors import TransportFailure
from src.lessons.timer import StopHandle

if TYPE_CHECKING:
    from src.lessons.session import LessonSession


@dataclass(frozen=True)
class SendResult:
    """Outcome of one telemetry POST."""

    ok: bool
    status: int | None = None
    error: TransportFailure | None = None
    body: Any = None
    skipped: bool = False


def build_session_payload(session: "LessonSession", student_name: str | None = None) -> dict[str, Any]:
    """
    Build the telemetry body for a session.

    Returns:
        {studentName, completedLessons, activeLessons, timestamp}
    """
    payload = session.snapshot().to_payload()
    if student_name:
        payload["studentName"] = student_name
    return payload


@dataclass
class SessionTelemetryReporter:
    """
    Background telemetry sender.

    Usage:
        reporter = SessionTelemetryReporter(session, "Jake Ferguson")
        stop = reporter.start()
        # ... student works through lessons ...
        stop()  # sends a final snapshot
    """

    session: "LessonSession"
    student_name: str | None = None
    endpoint: str | None = None
    interval_seconds: float | None = None
    client: httpx.Client | None = None

    # Internal state
    _owns_client: bool = field(default=False, repr=False)
    _thread: threading.Thread | None = field(default=None, repr=False)
    _stop_event: threading.Event = field(default_factory=threading.Event, repr=False)
    _handle: StopHandle | None = field(default=None, repr=False)
    _last_sent: tuple | None = field(default=None, repr=False)
    _send_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        settings = get_settings()
        self.student_name = self.student_name or self.session.student_name
        self.endpoint = self.endpoint or settings.telemetry_endpoint
        if self.interval_seconds is None:
            self.interval_seconds = settings.telemetry_interval_seconds
        if self.client is None:
            self.client = httpx.Client(timeout=httpx.Timeout(settings.telemetry_timeout_seconds))
            self._owns_client = True

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> StopHandle:
        """Start periodic sending. Returns the existing handle if already running."""
        if self._handle is not None and not self._handle.stopped:
            logger.warning("Telemetry reporter already running")
            return self._handle

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="session-telemetry",
            daemon=True,
        )
        self._thread.start()
        self._handle = StopHandle(self._shutdown, name="session-telemetry")
        self.session.attach(self._handle)

        logger.info(
            "Session telemetry started for {} (endpoint: {}, interval: {}s)",
            self.student_name,
            self.endpoint,
            self.interval_seconds,
        )
        return self._handle

    def send_now(self, force: bool = False) -> SendResult:
        """
        Send the current snapshot immediately (blocking).

        Args:
            force: Send even if an identical snapshot was already acknowledged
        """
        with self._send_lock:
            snapshot = self.session.snapshot()
            fingerprint = snapshot.fingerprint()
            if not force and fingerprint == self._last_sent:
                logger.debug("Telemetry snapshot unchanged - skipping")
                return SendResult(ok=True, skipped=True)

            payload = snapshot.to_payload()
            payload["studentName"] = self.student_name

            # Network I/O happens outside the session lock
            result = self._post(payload)
            if result.ok:
                self._last_sent = fingerprint
            return result

    def _post(self, payload: dict[str, Any]) -> SendResult:
        try:
            response = self.client.post(self.endpoint, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            failure = TransportFailure(f"Telemetry request failed: {exc}")
            logger.warning(failure.message)
            return SendResult(ok=False, error=failure)

        try:
            body: Any = response.json()
        except ValueError:
            body = response.text

        if not response.is_success:
            failure = TransportFailure(
                f"Telemetry endpoint returned {response.status_code}",
                status=response.status_code,
            )
            logger.warning("{}: {}", failure.message, body)
            return SendResult(ok=False, status=response.status_code, error=failure, body=body)

        logger.debug(
            "Telemetry sent: {} active, {} completed",
            len(payload["activeLessons"]),
            len(payload["completedLessons"]),
        )
        return SendResult(ok=True, status=response.status_code, body=body)

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval_seconds):
            try:
                self.send_now()
            except Exception:
                logger.exception("Telemetry tick failed")

    def _shutdown(self) -> None:
        logger.info("Stopping session telemetry...")
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)

        # Final flush on logout
        try:
            self.send_now()
        except Exception:
            logger.exception("Final telemetry send failed")

        self.close()
        logger.info("Session telemetry stopped")

    def close(self) -> None:
        """Release the HTTP client if the reporter created it."""
        if self._owns_client and self.client is not None:
            self.client.close()
            self._owns_client = False
