"""
Error taxonomy for the pricing engine worker.

Fatal errors (SessionUnavailable, QueryError) abort the job.
Isolated errors (ChunkCreateFailure, RecordCreateFailure,
ProgressPublishFailure) are logged and captured in result data.
"""

from typing import Optional


class PricingEngineError(Exception):
    """Base class for all worker errors."""
    pass


class SalesforceError(PricingEngineError):
    """Raised by the REST client on any transport or API failure."""

    def __init__(self, message: str, status: Optional[int] = None, error_code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.error_code = error_code


class SessionUnavailable(PricingEngineError):
    """Stored credentials are missing or no connection could be built."""
    pass


class QueryError(PricingEngineError):
    """The Opportunity query failed. No partial processing happens."""
    pass


class ChunkCreateFailure(PricingEngineError):
    """A whole bulk-create call failed. Only that chunk is affected."""

    def __init__(self, message: str, chunk_index: int, size: int):
        super().__init__(message)
        self.chunk_index = chunk_index
        self.size = size


class RecordCreateFailure(PricingEngineError):
    """A single record was rejected inside an otherwise successful call."""
    pass


class ProgressPublishFailure(PricingEngineError):
    """A progress event could not be published."""
    pass
