"""
Tests for database.py and storage.py - SQLite listing storage.
"""

import sqlite3
from dataclasses import replace
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from jobnest.database import Listing
from jobnest.retry import RetryError
from jobnest.storage import ListingStore, StorageError, _like_pattern


class TestListingStoreLifecycle:
    """Test lazy engine creation and disposal."""

    def test_engine_created_on_first_use(self, tmp_path):
        db_path = tmp_path / "lazy.db"
        store = ListingStore(db_path)
        assert store._engine is None
        assert not db_path.exists()

        assert store.count() == 0
        assert store._engine is not None
        assert db_path.exists()

        store.close()
        assert store._engine is None

    def test_context_manager_closes(self, tmp_path):
        with ListingStore(tmp_path / "ctx.db") as store:
            store.count()
        assert store._engine is None

    def test_reopen_after_close(self, tmp_path, listing_factory):
        store = ListingStore(tmp_path / "reopen.db")
        store.upsert(listing_factory())
        store.close()
        assert store.count() == 1
        store.close()

    def test_creates_parent_directories(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "jobs.db"
        with ListingStore(db_path) as store:
            store.count()
        assert db_path.exists()

    def test_job_url_is_unique(self, store):
        """job_url is the durable identity and must be unique."""
        with pytest.raises(IntegrityError):
            with store.session_scope() as session:
                for company in ("acme", "beta"):
                    session.add(Listing(
                        job_url="https://example.com/1",
                        title="engineer",
                        company=company,
                        location="remote",
                        source="linkedin",
                    ))
        assert store.count() == 0


class TestUpsert:
    """Test ingestion keyed on job_url."""

    def test_new_listing(self, store, listing_factory):
        result = store.upsert(listing_factory(job_url="https://example.com/1"))
        assert result["status"] == "new"
        assert store.count() == 1

    def test_unchanged_listing(self, store, listing_factory):
        listing = listing_factory(job_url="https://example.com/1")
        store.upsert(listing)
        assert store.upsert(listing)["status"] == "no-change"
        assert store.count() == 1

    def test_updated_listing(self, store, listing_factory):
        listing = listing_factory(job_url="https://example.com/1", salary=None)
        store.upsert(listing)

        result = store.upsert(replace(listing, title="senior engineer", salary="$150k"))

        assert result["status"] == "updated"
        assert set(result["changed"]) == {"title", "salary"}
        [found] = store.find()
        assert found.title == "senior engineer"
        assert found.salary == "$150k"

    def test_same_content_different_urls_both_stored(self, store, listing_factory):
        """Content duplicates are only collapsed at ranking time."""
        store.upsert(listing_factory(title="Data Analyst", job_url="https://a.com/1"))
        store.upsert(listing_factory(title="Data Analyst", job_url="https://b.com/1"))
        assert store.count() == 2


class TestFind:
    """Test the ranking query primitive."""

    @pytest.fixture
    def populated(self, store, listing_factory):
        store.upsert(listing_factory(title="React Developer", company="Acme", location="Bangalore",
                                     source="linkedin", job_url="https://a.com/1", hours_old=5))
        store.upsert(listing_factory(title="Data Analyst", company="ReactiveCo", location="Remote",
                                     source="indeed", job_url="https://a.com/2", hours_old=1))
        store.upsert(listing_factory(title="Backend Engineer", company="Beta", location="Pune",
                                     source="glassdoor", job_url="https://a.com/3", hours_old=10))
        return store

    def test_newest_first(self, populated):
        urls = [l.job_url for l in populated.find()]
        assert urls == ["https://a.com/2", "https://a.com/1", "https://a.com/3"]

    def test_search_matches_title_or_company(self, populated):
        """Case-insensitive substring on title or company."""
        titles = {l.title for l in populated.find(search="REACT")}
        assert titles == {"React Developer", "Data Analyst"}

    def test_location_substring(self, populated):
        assert [l.title for l in populated.find(location="bang")] == ["React Developer"]

    def test_source_exact(self, populated):
        assert [l.title for l in populated.find(source="glassdoor")] == ["Backend Engineer"]
        assert populated.find(source="glass") == []

    def test_limit(self, populated):
        assert len(populated.find(limit=2)) == 2
        assert populated.find(limit=0) == []

    def test_like_wildcards_are_literal(self, populated, listing_factory):
        populated.upsert(listing_factory(title="100% Remote Engineer", job_url="https://a.com/4"))
        assert [l.title for l in populated.find(search="100%")] == ["100% Remote Engineer"]
        assert populated.find(search="_") == []

    def test_ties_in_insertion_order(self, store, listing_factory):
        for i in range(3):
            store.upsert(listing_factory(title=f"Role {i}", job_url=f"https://a.com/{i}", hours_old=1))
        assert [l.title for l in store.find()] == ["Role 0", "Role 1", "Role 2"]

    def test_returns_records(self, populated):
        record = populated.find(search="backend")[0]
        assert record.company == "Beta"
        assert record.source == "glassdoor"
        assert isinstance(record.scraped_at, datetime)

    def test_like_pattern_escaping(self):
        assert _like_pattern("a%b_c\\d") == "%a\\%b\\_c\\\\d%"


class TestStorageErrors:
    """Test failure handling."""

    def test_broken_database_raises_storage_error(self, tmp_path):
        db_path = tmp_path / "broken.db"
        db_path.write_bytes(b"this is not a sqlite database" * 100)
        with ListingStore(db_path) as store:
            with pytest.raises(StorageError):
                store.find()

    def test_transient_errors_retried(self, store, monkeypatch):
        """A locked database is retried before giving up."""
        monkeypatch.setattr("time.sleep", lambda s: None)
        calls = [0]

        def locked(session):
            calls[0] += 1
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with pytest.raises(StorageError) as exc_info:
            store._execute(locked, "query")
        assert calls[0] == 3
        assert isinstance(exc_info.value.__cause__, RetryError)

    def test_transient_error_recovers(self, store, monkeypatch):
        monkeypatch.setattr("time.sleep", lambda s: None)
        calls = [0]

        def flaky(session):
            calls[0] += 1
            if calls[0] == 1:
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))
            return "ok"

        assert store._execute(flaky, "query") == "ok"
        assert calls[0] == 2

    def test_locked_write_is_retried(self, tmp_path, listing_factory, monkeypatch):
        """A write blocked by another connection's lock succeeds once the lock clears."""
        db_path = tmp_path / "locked.db"
        store = ListingStore(db_path, timeout=0.05)
        store.count()

        holder = sqlite3.connect(str(db_path), isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        sleeps = []

        def release_lock(delay):
            sleeps.append(delay)
            if holder.in_transaction:
                holder.execute("COMMIT")

        monkeypatch.setattr("time.sleep", release_lock)
        try:
            result = store.upsert(listing_factory(job_url="https://example.com/locked"))
            assert result["status"] == "new"
            assert sleeps == [0.2]
            assert store.count() == 1
        finally:
            holder.close()
            store.close()

    def test_locked_write_gives_up(self, tmp_path, listing_factory, monkeypatch):
        db_path = tmp_path / "locked.db"
        store = ListingStore(db_path, timeout=0.05)
        store.count()

        holder = sqlite3.connect(str(db_path), isolation_level=None)
        holder.execute("BEGIN IMMEDIATE")
        sleeps = []
        monkeypatch.setattr("time.sleep", sleeps.append)
        try:
            with pytest.raises(StorageError) as exc_info:
                store.upsert(listing_factory(job_url="https://example.com/locked"))
            assert "database is locked" in str(exc_info.value)
            assert len(sleeps) == 2
        finally:
            holder.execute("ROLLBACK")
            holder.close()
            store.close()

    def test_unopenable_path_raises_storage_error(self, tmp_path):
        """A database path under a regular file cannot be created."""
        blocker = tmp_path / "afile"
        blocker.write_text("not a directory")
        store = ListingStore(blocker / "jobs.db")
        with pytest.raises(StorageError):
            store.find()
        assert store._engine is None

    def test_permanent_errors_not_retried(self, store):
        calls = [0]

        def missing_table(session):
            calls[0] += 1
            raise OperationalError("SELECT 1", {}, Exception("no such table: nope"))

        with pytest.raises(StorageError):
            store._execute(missing_table, "query")
        assert calls[0] == 1
