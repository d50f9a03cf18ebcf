"""
Attachment Previews

Opening a receipt means handing the UI something it can display: a
temporary file holding the blob. Each one is a PreviewLease.

DESIGN DECISION: Every lease is released exactly once, by whichever
comes first:
1. Leaving its `async with` block
2. Its TTL expiring (a `loop.call_later` timer)
3. The next `acquire()` sweeping expired leases
4. `PreviewManager.close()`

Releasing deletes the temporary file. A released lease's path must not
be used again.
"""

import asyncio
import mimetypes
import os
import tempfile
import time
from pathlib import Path
from typing import Awaitable, Callable, Optional
from uuid import UUID, uuid4

import structlog

from ledger.config import get_settings
from ledger.models.attachment import ResolvedAttachment
from ledger.models.transaction import AttachmentRef

logger = structlog.get_logger(__name__)

AttachmentResolver = Callable[[AttachmentRef], Awaitable[ResolvedAttachment]]


class PreviewLease:
    """A temporary file backing one displayed attachment."""

    def __init__(
        self,
        manager: "PreviewManager",
        path: Path,
        name: str,
        mime_type: str,
        expires_at: float,
    ):
        self.lease_id: UUID = uuid4()
        self.path = path
        self.name = name
        self.mime_type = mime_type
        self.expires_at = expires_at
        self._manager = manager
        self._timer: Optional[asyncio.TimerHandle] = None
        self.released = False

    def release(self) -> None:
        """Delete the backing file. Safe to call more than once."""
        self._manager.release(self)

    async def __aenter__(self) -> "PreviewLease":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "active"
        return f"PreviewLease({self.name!r}, {state})"


class PreviewManager:
    """
    Materializes attachments into temporary files and tracks their leases.

    Usage:
        async with PreviewManager(flow.resolve_attachment) as previews:
            async with await previews.acquire(ref) as lease:
                show(lease.path)
    """

    def __init__(
        self,
        resolver: AttachmentResolver,
        ttl_seconds: Optional[float] = None,
        directory: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._resolver = resolver
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().app.preview_ttl_seconds
        self._directory = directory
        self._clock = clock
        self._leases: dict[UUID, PreviewLease] = {}

    @property
    def active_leases(self) -> list[PreviewLease]:
        return list(self._leases.values())

    def _suffix(self, resolved: ResolvedAttachment) -> str:
        suffix = Path(resolved.name).suffix
        if suffix:
            return suffix
        return mimetypes.guess_extension(resolved.mime_type) or ""

    def _materialize(self, resolved: ResolvedAttachment) -> Path:
        fd, raw_path = tempfile.mkstemp(
            prefix="ledger-preview-",
            suffix=self._suffix(resolved),
            dir=self._directory,
        )
        path = Path(raw_path)
        try:
            with os.fdopen(fd, "wb") as target:
                for chunk in resolved.blob.iter_chunks():
                    target.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return path

    def release_expired(self) -> int:
        """Release every lease past its TTL. Returns how many were released."""
        now = self._clock()
        expired = [lease for lease in self._leases.values() if lease.expires_at <= now]
        for lease in expired:
            self.release(lease)
        return len(expired)

    async def acquire(self, ref: AttachmentRef) -> PreviewLease:
        """
        Write the referenced blob to a temporary file and lease it.

        Raises:
            NotFoundError: If the blob is gone
            StorageError: If the blob cannot be read
        """
        self.release_expired()

        resolved = await self._resolver(ref)
        path = self._materialize(resolved)
        lease = PreviewLease(
            manager=self,
            path=path,
            name=resolved.name,
            mime_type=resolved.mime_type,
            expires_at=self._clock() + self._ttl,
        )
        self._leases[lease.lease_id] = lease

        loop = asyncio.get_running_loop()
        lease._timer = loop.call_later(self._ttl, self.release, lease)

        logger.debug("preview_acquired", lease_id=str(lease.lease_id), size=resolved.blob.size)
        return lease

    def release(self, lease: PreviewLease) -> None:
        if lease.released:
            return
        lease.released = True
        if lease._timer is not None:
            lease._timer.cancel()
            lease._timer = None
        self._leases.pop(lease.lease_id, None)
        try:
            lease.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("preview_cleanup_failed", path=str(lease.path), error=str(e))
        logger.debug("preview_released", lease_id=str(lease.lease_id))

    def close(self) -> None:
        """Release every outstanding lease."""
        for lease in list(self._leases.values()):
            self.release(lease)

    async def __aenter__(self) -> "PreviewManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()
