"""
Custom exceptions for the trading coach.

All custom exceptions should be defined here for easy discovery
and consistent error handling throughout the application.

An ambiguous classification is not an error: classifiers return ``None``.
"""


class CoachError(Exception):
    """Base exception for all coach errors."""
    pass


class StoreWriteFailed(CoachError):
    """Raised when the persistence collaborator fails to read or write.

    In-memory state still advances; callers log and continue.
    """
    pass


class InferenceFailed(CoachError):
    """Raised when a classification, advice or summarization call fails."""
    pass


class StaleArtifact(CoachError):
    """Raised when a capture predates the current run."""
    pass


class CaptureError(CoachError):
    """Raised when the capture source cannot be read."""
    pass


class NoActiveUserError(CoachError):
    """Raised when a command needs a user and none is set."""
    pass


class ConfigurationError(CoachError):
    """Raised when there's an error in configuration."""
    pass
