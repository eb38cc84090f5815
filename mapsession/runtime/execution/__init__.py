"""Capture and restore pipelines for map sessions."""

from mapsession.runtime.execution.builder import build_payload, capture_session_state
from mapsession.runtime.execution.restorer import restore_session

__all__ = [
    "build_payload",
    "capture_session_state",
    "restore_session",
]
