"""
Quota tracker.

Usage is the sum of every File row an owner has, trashed ones included:
trash keeps counting until it is purged.
"""
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from unidrive.exceptions import QuotaExceededError
from unidrive.models import File, User


@dataclass(frozen=True)
class QuotaSummary:
    max: int
    used: int


def usage(db: Session, owner_id: int) -> int:
    return int(db.scalar(select(func.coalesce(func.sum(File.size), 0)).where(File.user_id == owner_id)))


def quota_summary(db: Session, user: User) -> QuotaSummary:
    return QuotaSummary(max=user.max_storage_bytes or 0, used=usage(db, user.id))


class RequestQuota:
    """
    Running tally for one upload request.

    Every chunk is charged as it is read, so an oversized upload is cut off
    the moment it crosses the limit rather than after it has been stored.
    """

    def __init__(self, used: int, max_bytes: int):
        self.used = used
        self.max_bytes = max_bytes
        self.tally = 0

    @classmethod
    def for_user(cls, db: Session, user: User) -> "RequestQuota":
        return cls(used=usage(db, user.id), max_bytes=user.max_storage_bytes or 0)

    @property
    def remaining(self) -> int | None:
        if not self.max_bytes:
            return None
        return max(self.max_bytes - self.used - self.tally, 0)

    def fits(self, incoming: int) -> bool:
        """True when ``incoming`` more bytes fit (max_bytes 0 = unlimited)."""
        return not self.max_bytes or self.used + self.tally + incoming <= self.max_bytes

    def check(self, incoming: int) -> None:
        """Raise QuotaExceededError if ``incoming`` bytes would not fit."""
        if not self.fits(incoming):
            raise QuotaExceededError(self.used + self.tally, incoming, self.max_bytes)

    def charge(self, size: int) -> None:
        self.check(size)
        self.tally += size

    def release(self, size: int) -> None:
        self.tally = max(self.tally - size, 0)

    def meter(self, chunks: AsyncIterator[bytes]) -> "MeteredStream":
        return MeteredStream(self, chunks)


def admit(db: Session, user: User, incoming: int) -> bool:
    """True when ``incoming`` more bytes fit in the owner's stored total."""
    return RequestQuota.for_user(db, user).fits(incoming)


class MeteredStream:
    """
    Async iterable that charges each chunk to a RequestQuota before passing
    it on. ``charged`` holds the bytes charged so far, so the caller can
    release them if the upload fails.
    """

    def __init__(self, quota: RequestQuota, chunks: AsyncIterator[bytes]):
        self.quota = quota
        self.chunks = chunks
        self.charged = 0

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        async for chunk in self.chunks:
            self.quota.charge(len(chunk))
            self.charged += len(chunk)
            yield chunk

    def refund(self) -> None:
        self.quota.release(self.charged)
        self.charged = 0
