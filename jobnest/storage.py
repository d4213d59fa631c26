"""
Listing storage backed by SQLite.

ListingStore owns its engine: it is created on first use and disposed by
close() or by leaving a `with` block. Nothing here is shared between stores.
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .database import Base, Listing, create_db_engine
from .logger import get_logger
from .models import ListingRecord
from .retry import RetryError, exponential_backoff, is_transient_db_error

logger = get_logger()

_UPSERT_FIELDS = ("title", "company", "location", "description", "salary", "source", "scraped_at")


class StorageError(Exception):
    """Raised when the listing store cannot complete a query or write."""
    pass


class _TransientDBError(Exception):
    pass


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _log_retry(attempt: int, error: Exception, delay: float):
    logger.warning("Retrying database operation", attempt=attempt, delay=delay, error=str(error))


class ListingStore:
    def __init__(self, db_path: Path, timeout: float = 15.0):
        self.db_path = Path(db_path)
        self.timeout = timeout
        self._engine = None
        self._session_factory = None

    def __enter__(self) -> "ListingStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _sessions(self) -> sessionmaker:
        if self._engine is None:
            try:
                engine = create_db_engine(self.db_path, timeout=self.timeout)
            except OSError as e:
                logger.error("Listing store open failed", path=str(self.db_path), error=str(e))
                raise StorageError(f"Listing store open failed: {e}") from e
            try:
                Base.metadata.create_all(engine)
            except SQLAlchemyError:
                engine.dispose()
                raise
            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            logger.debug("Opened listing store", path=str(self.db_path))
        return self._session_factory

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.debug("Closed listing store", path=str(self.db_path))

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        session = self._sessions()()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @exponential_backoff(max_retries=2, base_delay=0.2, exceptions=(_TransientDBError,), on_retry=_log_retry)
    def _unit_of_work(self, operation):
        # Commit stays inside the retry: SQLite reports a locked write at flush time
        try:
            with self.session_scope() as session:
                return operation(session)
        except OperationalError as e:
            if is_transient_db_error(e):
                raise _TransientDBError(str(e)) from e
            raise

    def _execute(self, operation, action: str):
        try:
            return self._unit_of_work(operation)
        except (RetryError, SQLAlchemyError) as e:
            logger.error(f"Listing store {action} failed", path=str(self.db_path), error=str(e))
            raise StorageError(f"Listing store {action} failed: {e}") from e

    def find(
        self,
        search: str = "",
        location: str = "",
        source: str = "",
        limit: int = 500,
    ) -> List[ListingRecord]:
        """
        Query listings newest first.

        Args:
            search: Case-insensitive substring of title or company
            location: Case-insensitive substring of location
            source: Exact source tag
            limit: Maximum number of records to return

        Returns:
            List of ListingRecord sorted by scraped_at descending,
            ties in insertion order

        Raises:
            StorageError: If the database query fails
        """
        stmt = select(Listing)
        if search:
            pattern = _like_pattern(search)
            stmt = stmt.where(
                or_(
                    Listing.title.ilike(pattern, escape="\\"),
                    Listing.company.ilike(pattern, escape="\\"),
                )
            )
        if location:
            stmt = stmt.where(Listing.location.ilike(_like_pattern(location), escape="\\"))
        if source:
            stmt = stmt.where(Listing.source == source)
        stmt = stmt.order_by(Listing.scraped_at.desc(), Listing.id.asc()).limit(max(0, limit))

        def operation(session: Session) -> List[ListingRecord]:
            return [row.to_record() for row in session.scalars(stmt)]

        return self._execute(operation, "query")

    def count(self) -> int:
        return self._execute(
            lambda session: session.scalar(select(func.count()).select_from(Listing)),
            "count",
        )

    def upsert(self, record: ListingRecord) -> Dict[str, Any]:
        """
        Insert a listing or update the one sharing its job_url.

        Returns:
            {"status": "new" | "updated" | "no-change", "changed": [...]}
        """
        def operation(session: Session) -> Dict[str, Any]:
            row: Optional[Listing] = session.scalars(
                select(Listing).where(Listing.job_url == record.job_url)
            ).first()
            if row is None:
                session.add(Listing(job_url=record.job_url, **{f: getattr(record, f) for f in _UPSERT_FIELDS}))
                return {"status": "new", "changed": []}

            changed = [f for f in _UPSERT_FIELDS if getattr(row, f) != getattr(record, f)]
            if not changed:
                return {"status": "no-change", "changed": []}
            for f in changed:
                setattr(row, f, getattr(record, f))
            return {"status": "updated", "changed": changed}

        return self._execute(operation, "upsert")
