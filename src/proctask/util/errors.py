"""Application-level error types."""


class ProcTaskError(Exception):
    """Base error for proctask."""


class InvalidConfigurationError(ProcTaskError):
    """Raised when a task specification or spec file fails validation."""


class InvalidStateError(ProcTaskError):
    """Raised when a task operation is invoked outside its valid state."""


class SpawnFailureError(ProcTaskError):
    """Raised when the OS cannot create the task process."""
