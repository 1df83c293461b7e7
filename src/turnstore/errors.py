"""Exception hierarchy for turnstore."""


class TurnstoreError(Exception):
    """Base class for all turnstore errors."""


class SessionStoreError(TurnstoreError):
    """A session could not be saved, loaded or deleted."""

    def __init__(self, session_id: str, message: str):
        super().__init__(message)
        self.session_id = session_id


class SessionNotFoundError(SessionStoreError):
    """No document exists for the session."""


class SessionCorruptError(SessionStoreError):
    """The document (and its backup, if any) could not be parsed."""


class SessionTooLargeError(SessionStoreError):
    """The document exceeds the load size ceiling."""

    def __init__(self, session_id: str, size: int, limit: int):
        super().__init__(
            session_id,
            f"Session {session_id} is {size} bytes, refusing to load more than {limit}",
        )
        self.size = size
        self.limit = limit


class SessionIOError(SessionStoreError):
    """A write, rename or delete failed at the OS level."""


class SessionValidationError(SessionStoreError):
    """The session cannot be persisted as given (e.g. empty id)."""


class ProtocolFault(TurnstoreError):
    """A tool continuation resolved to no tool results to send."""
