"""Rebuild an authorized Salesforce connection for a queued job."""

from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .errors import SessionUnavailable
from .logger import get_logger
from .salesforce import SalesforceConnection
from .storage import CredentialStore

logger = get_logger()


def reconstruct_session(job_id: str, store: CredentialStore, settings: Settings) -> SalesforceConnection:
    """
    Look up the credentials stashed for job_id and build a connection.

    No network call is made; a stale token only shows up on first use.

    Raises:
        SessionUnavailable: If the lookup fails, the token or endpoint is
            missing, or the connection cannot be constructed
    """
    try:
        credentials = store.load_credentials(job_id)
    except SQLAlchemyError as e:
        raise SessionUnavailable(f"Credential lookup failed for job {job_id}: {e}") from e
    if credentials is None:
        raise SessionUnavailable(f"No stored Salesforce session for job {job_id}")

    session_token, endpoint = credentials
    if not session_token or not session_token.strip():
        raise SessionUnavailable(f"Stored session token is empty for job {job_id}")
    if not endpoint or not endpoint.strip():
        raise SessionUnavailable(f"Stored service endpoint is empty for job {job_id}")

    try:
        connection = SalesforceConnection.from_endpoint(
            endpoint.strip(),
            session_token.strip(),
            api_version=settings.api_version,
            timeout=settings.http_timeout,
            pool_size=settings.pool_size,
        )
    except ValueError as e:
        raise SessionUnavailable(f"Cannot connect to Salesforce for job {job_id}: {e}") from e

    logger.debug("Salesforce session reconstructed", job_id=job_id, instance_url=connection.instance_url)
    return connection
