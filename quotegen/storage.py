"""Credential store keyed by job id."""

from pathlib import Path
from typing import Optional, Tuple

from .database import JobSession, init_database, session_factory


class CredentialStore:
    """Reads and writes the (session token, endpoint) pair of each job."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        # One engine per store; every operation borrows a session from it
        self.engine = init_database(db_path)
        self.Session = session_factory(self.engine)

    def save_credentials(self, job_id: str, session_token: str, endpoint: str) -> None:
        """Stash credentials for a job, replacing any previous pair."""
        session = self.Session()
        try:
            session.merge(JobSession(job_id=job_id, session_token=session_token, endpoint=endpoint))
            session.commit()
        finally:
            session.close()

    def load_credentials(self, job_id: str) -> Optional[Tuple[Optional[str], Optional[str]]]:
        """Return (session_token, endpoint), or None if nothing was stashed."""
        session = self.Session()
        try:
            row = session.get(JobSession, job_id)
            if row is None:
                return None
            return row.session_token, row.endpoint
        finally:
            session.close()

    def discard_credentials(self, job_id: str) -> bool:
        """Delete a job's credentials. Returns True if a row was removed."""
        session = self.Session()
        try:
            removed = session.query(JobSession).filter_by(job_id=job_id).delete()
            session.commit()
            return removed > 0
        finally:
            session.close()

    def close(self) -> None:
        """Release the engine's pooled connections."""
        self.engine.dispose()
