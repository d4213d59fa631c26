"""
Database schema and engine management.

Uses SQLite with SQLAlchemy for listing storage.
"""

from pathlib import Path

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from .models import ListingRecord, utcnow

Base = declarative_base()


class Listing(Base):
    """Scraped job listing."""

    __tablename__ = "listings"

    # Insertion order breaks ties between equal scraped_at values
    id = Column(Integer, primary_key=True, autoincrement=True)
    job_url = Column(String, nullable=False, unique=True)
    title = Column(String, nullable=False)
    company = Column(String, nullable=False)
    location = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)
    salary = Column(String, nullable=True)
    source = Column(String, nullable=False, index=True)  # linkedin, indeed, glassdoor, ...
    scraped_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    def to_record(self) -> ListingRecord:
        return ListingRecord(
            title=self.title,
            company=self.company,
            location=self.location,
            job_url=self.job_url,
            source=self.source,
            scraped_at=self.scraped_at,
            description=self.description,
            salary=self.salary,
        )


def create_db_engine(db_path: Path, timeout: float = 15.0) -> Engine:
    """
    Create an engine for a SQLite file, creating parent directories.

    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait on a locked database before failing

    Returns:
        SQLAlchemy engine
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(f"sqlite:///{db_path}", connect_args={"timeout": timeout})
