import uuid
from dataclasses import dataclass

SCHEME_SEPARATOR = "://"


class InvalidStorageLocator(ValueError):
    pass


def new_document_id() -> uuid.UUID:
    return uuid.uuid4()

def blob_key_for(document_id: uuid.UUID, suffix: str = ".pdf") -> str:
    return f"{document_id}{suffix}"


@dataclass(frozen=True)
class StorageLocator:
    """Canonical ``<scheme>://<bucket>/<key>`` handle of a stored blob."""

    scheme: str
    bucket: str
    key: str

    def __post_init__(self):
        if not self.scheme or SCHEME_SEPARATOR in self.scheme:
            raise InvalidStorageLocator(f"Invalid scheme: {self.scheme!r}")
        if not self.bucket or "/" in self.bucket:
            raise InvalidStorageLocator(f"Invalid bucket name: {self.bucket!r}")
        if not self.key:
            raise InvalidStorageLocator("Object key must not be empty")

    def __str__(self) -> str:
        return f"{self.scheme}{SCHEME_SEPARATOR}{self.bucket}/{self.key}"

    @classmethod
    def for_document(cls, scheme: str, bucket: str, document_id: uuid.UUID, suffix: str = ".pdf") -> "StorageLocator":
        return cls(scheme=scheme, bucket=bucket, key=blob_key_for(document_id, suffix))

    @classmethod
    def parse(cls, value: str) -> "StorageLocator":
        scheme, separator, rest = value.partition(SCHEME_SEPARATOR)
        if not separator:
            raise InvalidStorageLocator(f"Missing scheme in storage locator: {value!r}")
        bucket, slash, key = rest.partition("/")
        if not slash:
            raise InvalidStorageLocator(f"Missing object key in storage locator: {value!r}")
        return cls(scheme=scheme, bucket=bucket, key=key)
