"""
Bounded parallel bulk creation.

Splits create requests into chunks of at most 200 records, runs the
chunks on a fixed-size thread pool and joins the results back in
request order. A failed chunk only fails its own records.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .config import MAX_CHUNK_SIZE
from .errors import ChunkCreateFailure, ProgressPublishFailure
from .logger import get_logger
from .models import CreateRequest, CreateResult

logger = get_logger()

CreateFn = Callable[[Sequence[CreateRequest]], List[CreateResult]]
ProgressSink = Callable[[float], None]


def chunk_requests(requests: Sequence[CreateRequest], chunk_size: int) -> List[Sequence[CreateRequest]]:
    """Split requests into consecutive slices of at most chunk_size."""
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    return [requests[i:i + chunk_size] for i in range(0, len(requests), chunk_size)]


class _ProgressCounter:
    """Completed-chunk counter. Increment, compute and emit happen under one lock."""

    def __init__(self, total: int, progress_range: Tuple[float, float], sink: Optional[ProgressSink]):
        self.total = total
        self.low, self.high = progress_range
        self.sink = sink
        self.completed = 0
        self._lock = threading.Lock()

    def chunk_done(self) -> float:
        with self._lock:
            self.completed += 1
            progress = self.low + (self.completed / self.total) * (self.high - self.low)
            if self.sink is not None:
                try:
                    self.sink(progress)
                except Exception as e:  # progress is best-effort
                    logger.record_error(ProgressPublishFailure.__name__)
                    logger.error("Progress sink failed", progress=progress, error=str(e))
            return progress


def _run_chunk(create: CreateFn, index: int, start: int, chunk: Sequence[CreateRequest],
               counter: _ProgressCounter) -> List[CreateResult]:
    end = start + len(chunk)
    logger.info(f"Creating records from index {start} to {end - 1} ({len(chunk)} records)", chunk=index)
    try:
        results = list(create(chunk))
        if len(results) != len(chunk):
            raise ChunkCreateFailure(
                f"Expected {len(chunk)} results, got {len(results)}", chunk_index=index, size=len(chunk)
            )
    except Exception as e:  # isolate the chunk; siblings keep running
        failure = e if isinstance(e, ChunkCreateFailure) else ChunkCreateFailure(str(e), index, len(chunk))
        logger.record_chunk_failure()
        logger.record_error(ChunkCreateFailure.__name__)
        logger.error("Error creating batch", chunk=index, start=start, size=len(chunk), error=str(failure))
        results = [CreateResult.failed(f"Chunk {index} failed: {failure}") for _ in chunk]

    created = sum(1 for r in results if r.success)
    logger.record_create_results(created, len(results) - created)
    counter.chunk_done()
    return results


def execute_parallel(
    create: CreateFn,
    requests: Sequence[CreateRequest],
    chunk_size: int = MAX_CHUNK_SIZE,
    pool_size: int = 20,
    progress_range: Tuple[float, float] = (0.0, 100.0),
    progress_sink: Optional[ProgressSink] = None,
) -> List[CreateResult]:
    """
    Create records in parallel chunks and return one result per request.

    Args:
        create: Bulk-create call for a single chunk (e.g. SalesforceConnection.create)
        requests: Records to create; result order follows this order
        chunk_size: Records per call, at most 200
        pool_size: Maximum chunks in flight
        progress_range: (low, high) that completed chunks are scaled into
        progress_sink: Called with the new progress after each chunk

    Returns:
        CreateResult list with the same length and order as requests.
        Records of a failed chunk are returned as failed results.
    """
    if chunk_size > MAX_CHUNK_SIZE:
        raise ValueError(f"chunk_size must be <= {MAX_CHUNK_SIZE}, got {chunk_size}")
    if pool_size < 1:
        raise ValueError(f"pool_size must be >= 1, got {pool_size}")
    chunks = chunk_requests(requests, chunk_size)
    if not chunks:
        return []

    total = len(chunks)
    counter = _ProgressCounter(total, progress_range, progress_sink)

    futures: Dict[int, Future] = {}
    with ThreadPoolExecutor(max_workers=min(pool_size, total), thread_name_prefix="chunk") as executor:
        for index, chunk in enumerate(chunks):
            futures[index] = executor.submit(_run_chunk, create, index, index * chunk_size, chunk, counter)

    # Reassemble by chunk index, not completion order
    all_results: List[CreateResult] = []
    for index in range(total):
        all_results.extend(futures[index].result())
    return all_results
