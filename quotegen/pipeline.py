"""
Two-phase Quote generation.

Phase 1 creates one Quote per Opportunity. Its results are correlated
back to the Opportunities by position, and phase 2 creates discounted
QuoteLineItems only under Quotes that were actually created.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence

from .batch import execute_parallel
from .config import Settings
from .errors import RecordCreateFailure
from .logger import get_logger
from .models import CorrelationMap, CreateRequest, CreateResult, Job, ParentRecord
from .pricing import DiscountTable, discounted_unit_price
from .query import build_opportunity_soql, query_all_records

logger = get_logger()

QUOTE_NAME = "New Quote"

PHASE_1_RANGE = (0.0, 50.0)
PHASE_2_RANGE = (50.0, 100.0)


@dataclass
class PipelineResult:
    opportunities: int = 0
    quotes_created: int = 0
    quotes_failed: int = 0
    line_items_created: int = 0
    line_items_failed: int = 0
    line_items_skipped: int = 0


def build_quote_requests(parents: Sequence[ParentRecord]) -> List[CreateRequest]:
    """One Quote per Opportunity, in Opportunity order."""
    return [
        CreateRequest("Quote", {"Name": QUOTE_NAME, "OpportunityId": parent.id})
        for parent in parents
    ]


def correlate(parents: Sequence[ParentRecord], results: Sequence[CreateResult]) -> CorrelationMap:
    """
    Map Opportunity id to new Quote id for every successful Quote.

    Raises:
        ValueError: If results do not line up with parents
    """
    if len(parents) != len(results):
        raise ValueError(f"Got {len(results)} Quote results for {len(parents)} Opportunities")

    correlation: CorrelationMap = {}
    for parent, result in zip(parents, results):
        if result.success and result.new_id:
            correlation[parent.id] = result.new_id
        else:
            logger.record_error(RecordCreateFailure.__name__)
            logger.error(
                f"Failed to create Quote for Opportunity {parent.id}",
                error=result.error_message,
            )
    return correlation


def build_line_item_requests(
    parents: Sequence[ParentRecord],
    correlation: CorrelationMap,
    discount_rate: Decimal,
    result: Optional[PipelineResult] = None,
) -> List[CreateRequest]:
    """
    Discounted QuoteLineItems for every correlated Opportunity.

    Opportunities missing from correlation contribute nothing. Rows with
    zero quantity have no unit price and are skipped.
    """
    requests: List[CreateRequest] = []
    for parent in parents:
        quote_id = correlation.get(parent.id)
        if quote_id is None:
            continue
        for row in parent.child_rows:
            if row.quantity == 0:
                logger.warning(
                    "Skipping line item with zero quantity",
                    opportunity_id=parent.id,
                    line_item_id=row.id,
                )
                if result is not None:
                    result.line_items_skipped += 1
                continue
            requests.append(CreateRequest("QuoteLineItem", {
                "QuoteId": quote_id,
                "PricebookEntryId": row.pricebook_entry_id,
                "Quantity": row.quantity,
                "UnitPrice": discounted_unit_price(row.quantity, row.unit_price, discount_rate),
            }))
    return requests


def _count(results: Sequence[CreateResult]):
    created = sum(1 for r in results if r.success)
    return created, len(results) - created


def generate_quotes(
    connection,
    job: Job,
    settings: Settings,
    progress_sink=None,
    discounts: Optional[DiscountTable] = None,
) -> PipelineResult:
    """
    Query Opportunities for job.selector and create Quotes and QuoteLineItems.

    Raises:
        QueryError: If the Opportunity query fails
    """
    result = PipelineResult()
    parents = query_all_records(connection, build_opportunity_soql(job.selector))
    if not parents:
        logger.warning(
            "No Opportunities or related OpportunityLineItems found",
            job_id=job.job_id,
            where=job.selector,
        )
        return result
    result.opportunities = len(parents)
    logger.info(f"Processing {len(parents)} Opportunities", job_id=job.job_id)

    quote_requests = build_quote_requests(parents)
    logger.info(f"Performing bulk insert for {len(quote_requests)} Quotes", job_id=job.job_id)
    quote_results = execute_parallel(
        connection.create,
        quote_requests,
        chunk_size=settings.chunk_size,
        pool_size=settings.pool_size,
        progress_range=PHASE_1_RANGE,
        progress_sink=progress_sink,
    )
    result.quotes_created, result.quotes_failed = _count(quote_results)
    correlation = correlate(parents, quote_results)

    discounts = discounts or DiscountTable(settings.discount_rates)
    discount_rate = discounts.rate_for(settings.discount_region)
    line_item_requests = build_line_item_requests(parents, correlation, discount_rate, result)
    if not line_item_requests:
        logger.info("No QuoteLineItems to create", job_id=job.job_id)
        return result

    logger.info(
        f"Performing bulk insert for {len(line_item_requests)} QuoteLineItems",
        job_id=job.job_id,
        region=settings.discount_region,
        discount_rate=discount_rate,
    )
    line_item_results = execute_parallel(
        connection.create,
        line_item_requests,
        chunk_size=settings.chunk_size,
        pool_size=settings.pool_size,
        progress_range=PHASE_2_RANGE,
        progress_sink=progress_sink,
    )
    for item_result in line_item_results:
        if not item_result.success:
            logger.record_error(RecordCreateFailure.__name__)
            logger.error("Failed to create QuoteLineItem", job_id=job.job_id, error=item_result.error_message)
    result.line_items_created, result.line_items_failed = _count(line_item_results)
    return result
