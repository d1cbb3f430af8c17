"""
Tests for the quota tracker.
"""
import pytest
from sqlalchemy import func, select

from unidrive.exceptions import QuotaExceededError
from unidrive.models import File
from unidrive.services.quota import RequestQuota, admit, quota_summary, usage
from unidrive.services.upload import IncomingFile, upload_file, upload_files
from unidrive.utils.datetime import utc_now


async def body(data: bytes, chunk: int = 50_000):
    for i in range(0, len(data), chunk):
        yield data[i:i + chunk]


def test_usage_includes_trash(db, owner, root, make_file):
    make_file(root, "live.bin", b"x" * 100)
    make_file(root, "trashed.bin", b"x" * 50, deleted_at=utc_now())

    assert usage(db, owner.id) == 150
    assert quota_summary(db, owner).used == 150


def test_zero_max_means_unlimited(db, owner, root, make_file):
    make_file(root, "a.bin", b"x" * 100)

    assert admit(db, owner, 10**12)
    assert quota_summary(db, owner).max == 0


def test_admit_respects_limit(db, owner, root, make_file):
    owner.max_storage_bytes = 150
    db.commit()
    make_file(root, "a.bin", b"x" * 100)

    assert admit(db, owner, 50)
    assert not admit(db, owner, 51)


def test_admit_and_request_check_agree(db, owner, root, make_file):
    owner.max_storage_bytes = 150
    db.commit()
    make_file(root, "a.bin", b"x" * 100)
    quota = RequestQuota.for_user(db, owner)

    quota.check(50)
    with pytest.raises(QuotaExceededError) as exc:
        quota.check(51)
    assert exc.value.used == 100
    assert admit(db, owner, 50) and not admit(db, owner, 51)


def test_request_quota_charges_and_releases():
    quota = RequestQuota(used=900, max_bytes=1000)

    quota.charge(60)
    assert quota.remaining == 40
    with pytest.raises(QuotaExceededError):
        quota.charge(41)

    quota.release(60)
    assert quota.remaining == 100
    assert RequestQuota(used=5, max_bytes=0).remaining is None


@pytest.mark.asyncio
async def test_metered_stream_stops_at_limit():
    quota = RequestQuota(used=0, max_bytes=120)
    metered = quota.meter(body(b"x" * 200, chunk=50))

    received = []
    with pytest.raises(QuotaExceededError):
        async for chunk in metered:
            received.append(chunk)

    assert sum(len(c) for c in received) == 100
    metered.refund()
    assert quota.tally == 0


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(db, owner, root, registry, resolver, limiter, backend, make_file):
    """max 1,000,000 with 900,000 used: a 200,000 byte upload must not land."""
    owner.max_storage_bytes = 1_000_000
    db.commit()
    make_file(root, "existing.bin", b"x" * 900_000)

    with pytest.raises(QuotaExceededError):
        await upload_file(
            db,
            registry,
            resolver,
            limiter,
            owner,
            root,
            IncomingFile("big.bin", "application/octet-stream", body(b"y" * 200_000)),
            RequestQuota.for_user(db, owner),
        )

    assert db.scalar(select(func.count()).select_from(File)) == 1
    assert usage(db, owner.id) == 900_000
    assert f"/{owner.id}/big.bin" not in backend.objects
    assert limiter.active == 0


@pytest.mark.asyncio
async def test_declared_size_is_checked_before_streaming(db, owner, root, registry, resolver, limiter, backend):
    owner.max_storage_bytes = 10
    db.commit()

    async def never_read():
        raise AssertionError("body must not be read")
        yield b""

    with pytest.raises(QuotaExceededError):
        await upload_file(
            db,
            registry,
            resolver,
            limiter,
            owner,
            root,
            IncomingFile("a.bin", "", never_read(), size=11),
            RequestQuota.for_user(db, owner),
        )
    assert backend.uploads == 0


@pytest.mark.asyncio
async def test_quota_rejection_only_affects_offending_file(db, owner, root, registry, resolver, limiter):
    owner.max_storage_bytes = 100_000
    db.commit()

    report = await upload_files(
        db,
        registry,
        resolver,
        limiter,
        owner,
        root.id,
        [
            IncomingFile("small.bin", "", body(b"s" * 40_000)),
            IncomingFile("huge.bin", "", body(b"h" * 200_000)),
        ],
    )

    assert (report.moved, report.errors) == (1, 1)
    names = db.scalars(select(File.name)).all()
    assert names == ["small.bin"]
    assert usage(db, owner.id) == 40_000
