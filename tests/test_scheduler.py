# tests/test_scheduler.py
from datetime import timedelta

import pytest

from classifieds import scheduler
from classifieds.exceptions import StorageError
from classifieds.models import Listing, ListingStatus
from classifieds.utils import utc_now

from conftest import image_urls, make_listing


def test_run_cleanup_uses_own_session(monkeypatch, session_factory, db, category, object_store):
    monkeypatch.setattr(scheduler, "SessionLocal", session_factory)
    old = make_listing(db, category, status=ListingStatus.EXPIRED, expires_at=utc_now() - timedelta(days=3),
                       images=image_urls("a.jpg"))
    fresh = make_listing(db, category, status=ListingStatus.ACTIVE, expires_at=utc_now() + timedelta(days=3))
    old_id, fresh_id = old.id, fresh.id

    summary = scheduler.run_cleanup(object_store)

    assert summary.deleted == 1
    assert object_store.attempted == ["owner-1/a.jpg"]
    db.expire_all()
    assert db.get(Listing, old_id) is None
    assert db.get(Listing, fresh_id) is not None


def test_run_cleanup_closes_session_when_store_unavailable(monkeypatch, session_factory):
    closed = []

    class TrackedSession:
        def __init__(self):
            self._session = session_factory()

        def close(self):
            closed.append(True)
            self._session.close()

    def no_store():
        raise StorageError("STORAGE_URL not set")

    monkeypatch.setattr(scheduler, "SessionLocal", TrackedSession)
    monkeypatch.setattr(scheduler, "StorageClient", no_store)

    with pytest.raises(StorageError):
        scheduler.run_cleanup()
    assert closed == [True]


def test_start_refuses_without_storage_config(monkeypatch):
    monkeypatch.setattr(scheduler, "STORAGE_URL", "")
    with pytest.raises(StorageError):
        scheduler.start()
    assert not scheduler.scheduler.running


def test_scheduled_cleanup_logs_and_survives_failure(monkeypatch):
    calls = []

    def boom():
        calls.append(1)
        raise RuntimeError("storage down")

    monkeypatch.setattr(scheduler, "run_cleanup", boom)
    scheduler._scheduled_cleanup()
    assert calls == [1]
