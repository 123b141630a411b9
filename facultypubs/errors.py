"""Error taxonomy shared by adapters, the orchestrator and the store."""


class FacultyPubsError(Exception):
    """Base class for all errors raised by this package."""


class InputError(FacultyPubsError, ValueError):
    """Caller supplied an unusable query (e.g. an empty name)."""


class ProviderError(FacultyPubsError):
    """A provider call failed: timeout, non-2xx status or malformed payload."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class PersistenceError(FacultyPubsError):
    """The persistence collaborator could not save an ingestion result."""
