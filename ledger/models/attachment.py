"""
Attachment Models

Receipts can be tens of megabytes. Code that only needs to know that a
receipt exists (or how big it is) must never pay for reading it, so a
stored attachment carries a BlobHandle instead of its bytes.
"""

from contextlib import AbstractContextManager
from datetime import datetime
from io import BytesIO
from typing import Any, BinaryIO, Callable, Iterator, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger.models.transaction import AttachmentKind, utcnow

DEFAULT_CHUNK_SIZE = 64 * 1024


class BlobHandle:
    """
    Lazy, re-openable access to a stored blob.

    The opener returns a context manager yielding a readable, seekable
    binary stream (an sqlite3.Blob for the SQLite store).
    """

    def __init__(
        self,
        store_id: int,
        size: int,
        opener: Callable[[], AbstractContextManager],
    ):
        self.store_id = store_id
        self.size = size
        self._opener = opener

    def open(self) -> AbstractContextManager:
        """Open the blob for streaming reads."""
        return self._opener()

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        with self.open() as stream:
            while True:
                chunk = stream.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def read_bytes(self) -> bytes:
        """Load the whole payload. Only call this when the bytes are needed."""
        with self.open() as stream:
            return stream.read()

    def __len__(self) -> int:
        return self.size

    def __repr__(self) -> str:
        return f"BlobHandle(store_id={self.store_id}, size={self.size})"


class AttachmentUpload(BaseModel):
    """
    A file to persist in the attachment store.

    `content` is either the raw bytes or a binary file object; file
    objects are streamed into the store, never read whole.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, str_strip_whitespace=True)

    kind: AttachmentKind
    name: str = Field(
        default="",
        max_length=255,
        description="Original file name"
    )
    mime_type: str = Field(
        default="application/octet-stream",
        description="MIME type reported by the client"
    )
    content: Any = Field(
        ...,
        description="bytes or a readable binary file object"
    )

    @field_validator('content')
    @classmethod
    def validate_content(cls, v: Any) -> Union[bytes, BinaryIO]:
        if isinstance(v, (bytearray, memoryview)):
            return bytes(v)
        if isinstance(v, bytes):
            return v
        if callable(getattr(v, "read", None)):
            return v
        raise ValueError("Attachment content must be bytes or a binary file object")

    @field_validator('mime_type')
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        return v.lower() or "application/octet-stream"

    @property
    def is_stream(self) -> bool:
        return not isinstance(self.content, bytes)

    def content_size(self) -> int:
        """
        Number of bytes left to read from `content`.

        For streams this seeks to the end and back, so the stream must be
        seekable.
        """
        if not self.is_stream:
            return len(self.content)
        stream = self.content
        position = stream.tell()
        end = stream.seek(0, 2)
        stream.seek(position)
        return end - position


class Attachment(BaseModel):
    """A stored attachment: metadata plus a handle to the blob."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    id: int = Field(..., ge=1)
    name: str = ""
    mime_type: str = "application/octet-stream"
    size: int = Field(..., ge=0)
    created: datetime = Field(default_factory=utcnow)
    blob: BlobHandle


class ResolvedAttachment(BaseModel):
    """What the UI gets back when it opens a receipt."""
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    blob: BlobHandle
    mime_type: str
    name: str


def bytes_handle(store_id: int, payload: bytes) -> BlobHandle:
    """Handle over an in-memory payload (used by non-SQLite stores)."""
    return BlobHandle(store_id, len(payload), lambda: BytesIO(payload))


