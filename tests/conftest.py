"""
Pytest configuration and shared fixtures.
"""

import pytest
from pathlib import Path

from quotegen.logger import get_logger

# Create the shared logger before any quotegen module grabs it, without a log file
get_logger(enable_file=False)

from quotegen.config import Settings  # noqa: E402
from quotegen.models import Job  # noqa: E402
from quotegen.storage import CredentialStore  # noqa: E402

from fakes import FakeConnection, line_item, opportunity, page  # noqa: E402


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Default settings pointing at a temporary credential store."""
    return Settings(db_path=tmp_path / "quotegen.db")


@pytest.fixture
def store(settings) -> CredentialStore:
    """Empty credential store."""
    store = CredentialStore(settings.db_path)
    yield store
    store.close()


@pytest.fixture
def stored_job(store) -> Job:
    """A job whose session was stashed by intake."""
    job = Job(job_id="3f7c47f3-7c66-4c9a-92e5-ef2dbb9a1d67", selector="StageName = 'Prospecting'")
    store.save_credentials(job.job_id, "00Dxx0000001gPF!AQ4AQ.token", "https://acme.my.salesforce.com")
    return job


@pytest.fixture
def two_opportunities() -> FakeConnection:
    """Org with two Opportunities: one with two line items, one with none."""
    first = page([
        opportunity("006A", [line_item(10, 100, "01uA1", "00kA1"), line_item(2, 50, "01uA2", "00kA2")]),
        opportunity("006B"),
    ])
    return FakeConnection(first_page=first)


@pytest.fixture
def many_opportunities():
    """Factory for an org with n Opportunities, each holding one line item."""
    def _make(n: int, **kwargs) -> FakeConnection:
        records = [opportunity(f"006{i:05d}", [line_item(1, 10, f"01u{i:05d}")]) for i in range(n)]
        return FakeConnection(first_page=page(records), **kwargs)
    return _make


@pytest.fixture
def logs_dir(tmp_path) -> Path:
    path = tmp_path / "logs"
    path.mkdir()
    return path
