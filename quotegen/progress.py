"""
Progress reporting through a platform event.

Orgs without the event type simply get no progress; publishing never
raises and never changes the outcome of a job.
"""

from .errors import ProgressPublishFailure, SalesforceError
from .logger import get_logger
from .models import CreateRequest

logger = get_logger()


def probe_capability(connection, event_type: str) -> bool:
    """Return True if event_type can be described in this org."""
    try:
        connection.describe(event_type)
        return True
    except SalesforceError as e:
        logger.warning(
            f"Platform Event object '{event_type}' does not exist or is not accessible",
            error=str(e),
        )
        return False


class ProgressPublisher:
    """
    Publishes JobProgress events for one job.

    Values below floor are raised to it, so a stream that opens with
    floor never goes backwards when the first phase reports a small fraction.
    """

    def __init__(self, connection, job_id: str, enabled: bool, event_type: str = "JobProgress__e",
                 floor: float = 0.0):
        self.connection = connection
        self.job_id = job_id
        self.enabled = enabled
        self.event_type = event_type
        self.floor = floor

    def publish(self, progress_percent: float) -> None:
        """Best-effort publish of a progress value in [0, 100]."""
        if not self.enabled:
            return
        progress_percent = max(progress_percent, self.floor)
        try:
            self._send(progress_percent)
            logger.record_progress_event()
            logger.info(f"Progress event sent: {progress_percent:.1f}%", job_id=self.job_id)
        except Exception as e:  # never surfaces to the job
            logger.record_error(ProgressPublishFailure.__name__)
            logger.error("Failed to send progress event", job_id=self.job_id, error=str(e))

    def _send(self, progress_percent: float) -> None:
        event = CreateRequest(self.event_type, {"JobId__c": self.job_id, "Progress__c": progress_percent})
        results = self.connection.create([event])
        if not results:
            raise ProgressPublishFailure("No response received when sending progress event")
        if not results[0].success:
            raise ProgressPublishFailure(results[0].error_message or "Unknown error")

    __call__ = publish
