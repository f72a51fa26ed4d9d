from enum import Enum
from typing import Optional
import uuid


class ErrorKind(str, Enum):
    STORAGE_WRITE = "storage-write-error"
    METADATA_WRITE = "metadata-write-error"
    METADATA_READ = "metadata-read-error"
    INITIALIZATION = "initialization-error"


class DocumentError(Exception):
    """Base error raised by the document coordinator.

    Carries only the error kind and a fixed message; backend exceptions are
    logged where they happen and never attached.
    """

    kind: ErrorKind

    def __init__(self, message: str, document_id: Optional[uuid.UUID] = None):
        super().__init__(message)
        self.message = message
        self.document_id = document_id


class StorageWriteFailure(DocumentError):
    kind = ErrorKind.STORAGE_WRITE


class MetadataWriteFailure(DocumentError):
    kind = ErrorKind.METADATA_WRITE


class MetadataReadFailure(DocumentError):
    kind = ErrorKind.METADATA_READ


class InitializationFailure(DocumentError):
    kind = ErrorKind.INITIALIZATION
