"""
Database schema and connection management.

Uses SQLite with SQLAlchemy to hold the per-job session credentials
stashed by the intake side.
"""

from datetime import datetime
from pathlib import Path
from sqlalchemy import create_engine, Column, String, DateTime
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class JobSession(Base):
    """Salesforce session captured for one job."""

    __tablename__ = "job_sessions"

    job_id = Column(String, primary_key=True)
    session_token = Column(String, nullable=False)
    endpoint = Column(String, nullable=False)  # instance or service endpoint URL
    created_at = Column(DateTime, nullable=False, default=datetime.now)


def init_database(db_path: Path) -> Engine:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Engine bound to the database, for reuse by the caller
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    return engine


def session_factory(engine: Engine) -> sessionmaker:
    """
    Get a session factory bound to engine.

    Args:
        engine: Engine returned by init_database

    Returns:
        sessionmaker producing SQLAlchemy sessions
    """
    return sessionmaker(bind=engine)
