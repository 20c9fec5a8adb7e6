"""
Delivery of lesson progress to external collaborators.

Components:
- SessionTelemetryReporter: Periodic POST of session snapshots to SDSM
"""

from .telemetry import SendResult, SessionTelemetryReporter, build_session_payload

__all__ = [
    "SessionTelemetryReporter",
    "SendResult",
    "build_session_payload",
]
