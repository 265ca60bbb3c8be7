"""
Core enumerations for the coaching orchestrator.
"""
from enum import Enum


class PollerState(Enum):
    """Screenshot ingestion poller states.

    COLD_START: warm-up period; captures already on disk are absorbed, not processed
    ARMED: new captures are classified
    """
    COLD_START = "cold_start"
    ARMED = "armed"


class EventKind(Enum):
    """UI event kinds published by the orchestrator."""
    SESSION_TRANSITION = "sessionTransition"
    ADVICE_EMITTED = "adviceEmitted"
    CAPTURE_ERROR = "captureError"
    INFERENCE_ERROR = "inferenceError"


class Role(Enum):
    """Conversation turn roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
