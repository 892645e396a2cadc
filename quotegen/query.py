"""
Paginated Opportunity query.

Drains every page of a SOQL query and parses each Opportunity with its
nested OpportunityLineItems into typed records.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterator, List, Optional

from .errors import QueryError, SalesforceError
from .logger import get_logger
from .models import ChildSourceRow, ParentRecord

logger = get_logger()

CHILD_RELATIONSHIP = "OpportunityLineItems"

OPPORTUNITY_SOQL = (
    "SELECT Id, (SELECT Id, Product2Id, Quantity, UnitPrice, PricebookEntryId FROM OpportunityLineItems) "
    "FROM Opportunity WHERE {where}"
)


def build_opportunity_soql(where_clause: str) -> str:
    return OPPORTUNITY_SOQL.format(where=where_clause)


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        return None


def _iter_pages(connection, first_page: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    """Yield first_page and every page behind its nextRecordsUrl chain."""
    page = first_page
    while page is not None:
        yield page
        if page.get("done", True):
            break
        next_url = page.get("nextRecordsUrl")
        if not next_url:
            raise QueryError("Query page is not done but has no nextRecordsUrl")
        page = connection.query_more(next_url)


def _parse_child_row(raw: Dict[str, Any], parent_id: str) -> Optional[ChildSourceRow]:
    quantity = _to_decimal(raw.get("Quantity"))
    unit_price = _to_decimal(raw.get("UnitPrice"))
    pricebook_entry_id = raw.get("PricebookEntryId")
    if quantity is None or unit_price is None or not pricebook_entry_id:
        logger.warning(
            "Skipping line item with missing Quantity, UnitPrice or PricebookEntryId",
            opportunity_id=parent_id,
            line_item_id=raw.get("Id"),
        )
        return None
    return ChildSourceRow(
        quantity=quantity,
        unit_price=unit_price,
        pricebook_entry_id=pricebook_entry_id,
        id=raw.get("Id"),
        product_id=raw.get("Product2Id"),
    )


def _parse_parent(connection, raw: Dict[str, Any]) -> ParentRecord:
    parent_id = raw.get("Id")
    if not parent_id:
        raise QueryError("Opportunity record without Id in query response")

    rows: List[ChildSourceRow] = []
    children = raw.get(CHILD_RELATIONSHIP)
    if children:
        # Large subqueries come back paginated as well
        for page in _iter_pages(connection, children):
            for child in page.get("records") or []:
                row = _parse_child_row(child, parent_id)
                if row is not None:
                    rows.append(row)
    return ParentRecord(id=parent_id, child_rows=tuple(rows))


def query_all_records(connection, soql: str) -> List[ParentRecord]:
    """
    Run soql and return every Opportunity across all pages, in server order.

    Args:
        connection: SalesforceConnection (or anything with query/query_more)
        soql: Full SOQL statement

    Returns:
        List of ParentRecord; empty if nothing matched

    Raises:
        QueryError: On any transport, API or response-shape failure
    """
    parents: List[ParentRecord] = []
    try:
        first_page = connection.query(soql)
        if first_page is None:
            raise QueryError("Empty response to query")
        for page_number, page in enumerate(_iter_pages(connection, first_page), start=1):
            records = page.get("records") or []
            logger.debug("Fetched query page", page=page_number, records=len(records))
            for raw in records:
                parents.append(_parse_parent(connection, raw))
    except SalesforceError as e:
        raise QueryError(f"Query failed: {e}") from e
    except (AttributeError, TypeError) as e:
        raise QueryError(f"Malformed query response: {e}") from e
    return parents
