from typing import List, Optional

from .models import Job


def _is_non_empty_str(v) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_job_message(message) -> List[str]:
    """
    Returns a list of validation error messages for a "<job_id>:<selector>"
    queue message. Empty list means valid.
    """
    errors: List[str] = []
    if not isinstance(message, str):
        return ["Message must be a string"]

    if ":" not in message:
        errors.append("Message must have the form '<job_id>:<where clause>'")
        return errors

    job_id, selector = message.split(":", 1)
    if not _is_non_empty_str(job_id):
        errors.append("Job id must be a non-empty string")
    elif any(c.isspace() for c in job_id.strip()):
        errors.append("Job id must not contain whitespace")
    if not _is_non_empty_str(selector):
        errors.append("Where clause must be a non-empty string")
    return errors


def parse_job_message(message: str) -> Optional[Job]:
    """Parse a queue message into a Job, or None if it is malformed."""
    if validate_job_message(message):
        return None
    job_id, selector = message.split(":", 1)
    return Job(job_id=job_id.strip(), selector=selector.strip())
