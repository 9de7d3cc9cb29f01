from __future__ import annotations


class CorruptStateError(ValueError):
    """Persisted state could not be read, parsed, or migrated.

    Fatal for the tick that hit it. An operator should look at the state file: it usually
    means a partial write, manual edits, or a downgrade to an older release.
    """


class ConfigurationError(ValueError):
    """Raised when required runtime configuration is missing or invalid."""


class ExternalCallFailure(RuntimeError):
    """A collaborator call timed out or returned a non-success response."""

    def __init__(self, message: str, *, category: str = "fatal") -> None:
        super().__init__(message)
        self.category = category


class TradeExecutionError(ExternalCallFailure):
    """Trade submission or confirmation failed; treated as "did not happen"."""


class ContentGenerationError(ExternalCallFailure):
    pass


class PriceLookupError(ExternalCallFailure):
    pass


class InstanceLockedError(RuntimeError):
    """Another agent process already holds the lock for this state file."""
