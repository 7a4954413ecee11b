"""reqbridge errors - tagged failures surfaced to the caller."""


class ReqbridgeError(Exception):
    """Base class for failures that abort a single operation."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ReqbridgeError):
    """Input rejected before any mutation happened."""

    kind = "validation"


class FileReadError(ReqbridgeError):
    kind = "file-read"


class FileWriteError(ReqbridgeError):
    kind = "file-write"


class StorageError(ReqbridgeError):
    """The storage collaborator could not read or persist state."""

    kind = "storage"
