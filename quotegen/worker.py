"""
Job dispatch.

Runs one queued job end to end: reconnect with the stashed session,
probe for progress support, generate Quotes, then discard the
credentials. Outcomes are only observable through logs and progress
events; nothing is raised to the message loop.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .errors import PricingEngineError, QueryError, SessionUnavailable
from .logger import get_logger
from .models import Job
from .pipeline import PipelineResult, generate_quotes
from .progress import ProgressPublisher, probe_capability
from .schema import parse_job_message, validate_job_message
from .session import reconstruct_session
from .storage import CredentialStore

logger = get_logger()

STATUS_COMPLETED = "completed"
STATUS_NO_RECORDS = "no_records"
STATUS_FAILED = "failed"
STATUS_INVALID = "invalid"

# Sent as soon as the job starts
JOB_STARTED_PROGRESS = 1

Connect = Callable[[str, CredentialStore, Settings], Any]


@dataclass
class JobOutcome:
    job_id: Optional[str]
    status: str
    progress_enabled: bool = False
    result: PipelineResult = field(default_factory=PipelineResult)
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def execute_job(
    job: Job,
    store: CredentialStore,
    settings: Settings,
    connect: Connect = reconstruct_session,
) -> JobOutcome:
    """
    Execute a Quote generation job.

    Args:
        job: The dequeued job
        store: Credential store holding the job's session
        settings: Worker settings
        connect: Builds the connection for a job id (injectable for tests)

    Returns:
        JobOutcome describing what happened
    """
    logger.record_job_start()
    logger.info("Worker executing batch", job_id=job.job_id, where=job.selector)
    outcome = JobOutcome(job_id=job.job_id, status=STATUS_FAILED)
    connection = None
    try:
        connection = connect(job.job_id, store, settings)

        outcome.progress_enabled = probe_capability(connection, settings.progress_event)
        publisher = ProgressPublisher(
            connection,
            job.job_id,
            enabled=outcome.progress_enabled,
            event_type=settings.progress_event,
            floor=JOB_STARTED_PROGRESS,
        )
        publisher.publish(JOB_STARTED_PROGRESS)

        outcome.result = generate_quotes(connection, job, settings, progress_sink=publisher)
        outcome.status = STATUS_COMPLETED if outcome.result.opportunities else STATUS_NO_RECORDS
        logger.info("Job processing completed", job_id=job.job_id, **asdict(outcome.result))
    except SessionUnavailable as e:
        outcome.error = str(e)
        logger.record_error(SessionUnavailable.__name__)
        logger.error("Failed to reconnect to Salesforce", job_id=job.job_id, error=str(e))
    except QueryError as e:
        outcome.error = str(e)
        logger.record_error(QueryError.__name__)
        logger.error("Opportunity query failed, job aborted", job_id=job.job_id, error=str(e))
    except PricingEngineError as e:
        outcome.error = str(e)
        logger.record_error(type(e).__name__)
        logger.error("Error executing batch", job_id=job.job_id, error=str(e))
    finally:
        if connection is not None and hasattr(connection, "close"):
            connection.close()
        try:
            store.discard_credentials(job.job_id)
        except SQLAlchemyError as e:
            logger.record_error(type(e).__name__)
            logger.error("Failed to discard job credentials", job_id=job.job_id, error=str(e))

    logger.record_job_end(outcome.status != STATUS_FAILED)
    return outcome


def dispatch_message(
    message: str,
    store: CredentialStore,
    settings: Settings,
    connect: Connect = reconstruct_session,
) -> JobOutcome:
    """Validate a "<job_id>:<where clause>" message and execute its job."""
    errors = validate_job_message(message)
    if errors:
        logger.error("Invalid message format received", message=message, errors=errors)
        return JobOutcome(job_id=None, status=STATUS_INVALID, error="; ".join(errors))

    job = parse_job_message(message)
    logger.info("Worker received job", job_id=job.job_id, where=job.selector)
    return execute_job(job, store, settings, connect=connect)
