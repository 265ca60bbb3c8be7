"""
Core primitives of the coaching orchestrator.

This package contains:
- enums.py: PollerState, EventKind, Role
- exceptions.py: Custom exceptions
- models.py: sessions, artifacts, turns, events
- interfaces.py: collaborator interfaces
- history.py, context_change.py, message_dedup.py, notification_gate.py
- state.py: CoachState (shared state behind one lock)
"""

from tradecoach.core.enums import PollerState, EventKind, Role
from tradecoach.core.exceptions import (
    CoachError,
    StoreWriteFailed,
    InferenceFailed,
    StaleArtifact,
    CaptureError,
    NoActiveUserError,
    ConfigurationError,
)

__all__ = [
    # Enums
    'PollerState',
    'EventKind',
    'Role',

    # Exceptions
    'CoachError',
    'StoreWriteFailed',
    'InferenceFailed',
    'StaleArtifact',
    'CaptureError',
    'NoActiveUserError',
    'ConfigurationError',
]
