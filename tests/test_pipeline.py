"""
Tests for two-phase Quote generation.
"""

from decimal import Decimal

import pytest

from quotegen.config import Settings
from quotegen.errors import QueryError, SalesforceError
from quotegen.models import ChildSourceRow, CreateResult, Job, ParentRecord
from quotegen.pipeline import (
    QUOTE_NAME,
    PipelineResult,
    build_line_item_requests,
    build_quote_requests,
    correlate,
    generate_quotes,
)

from fakes import FakeConnection


def row(quantity, unit_price, pbe="01uPBE"):
    return ChildSourceRow(quantity=Decimal(str(quantity)), unit_price=Decimal(str(unit_price)), pricebook_entry_id=pbe)


@pytest.fixture
def parents():
    return [
        ParentRecord("006A", (row(10, 100, "01uA1"), row(2, 50, "01uA2"))),
        ParentRecord("006B", (row(1, 10, "01uB1"),)),
        ParentRecord("006C", ()),
    ]


class TestQuoteRequests:
    """Test phase 1 derivation."""

    def test_one_quote_per_parent_in_order(self, parents):
        requests = build_quote_requests(parents)

        assert [r.entity_kind for r in requests] == ["Quote"] * 3
        assert [r.fields["OpportunityId"] for r in requests] == ["006A", "006B", "006C"]
        assert all(r.fields["Name"] == QUOTE_NAME for r in requests)


class TestCorrelate:
    """Test mapping Quote results back to Opportunities."""

    def test_only_successes_are_mapped(self, parents):
        results = [CreateResult.ok("0Q0A"), CreateResult.failed("INVALID_CROSS_REFERENCE_KEY"), CreateResult.ok("0Q0C")]

        correlation = correlate(parents, results)

        assert correlation == {"006A": "0Q0A", "006C": "0Q0C"}

    def test_length_mismatch_rejected(self, parents):
        with pytest.raises(ValueError):
            correlate(parents, [CreateResult.ok("0Q0A")])


class TestLineItemRequests:
    """Test phase 2 derivation."""

    def test_line_items_reference_new_quote(self, parents):
        requests = build_line_item_requests(parents, {"006A": "0Q0A", "006B": "0Q0B"}, Decimal("0.10"))

        assert [r.fields["QuoteId"] for r in requests] == ["0Q0A", "0Q0A", "0Q0B"]
        assert [r.fields["PricebookEntryId"] for r in requests] == ["01uA1", "01uA2", "01uB1"]
        assert requests[0].entity_kind == "QuoteLineItem"
        assert requests[0].fields["Quantity"] == Decimal("10")
        assert requests[0].fields["UnitPrice"] == Decimal("90")
        assert requests[1].fields["UnitPrice"] == Decimal("45")

    def test_uncorrelated_parent_has_no_children(self, parents):
        """A parent whose Quote failed contributes no line items."""
        requests = build_line_item_requests(parents, {"006B": "0Q0B"}, Decimal("0"))

        assert len(requests) == 1
        assert requests[0].fields["QuoteId"] == "0Q0B"

    def test_every_request_references_a_correlated_quote(self, parents):
        correlation = {"006A": "0Q0A"}
        requests = build_line_item_requests(parents, correlation, Decimal("0.05"))
        assert {r.fields["QuoteId"] for r in requests} <= set(correlation.values())

    def test_zero_quantity_rows_skipped(self):
        parents = [ParentRecord("006Z", (row(0, 100), row(4, 25)))]
        result = PipelineResult()

        requests = build_line_item_requests(parents, {"006Z": "0Q0Z"}, Decimal("0.10"), result)

        assert len(requests) == 1
        assert requests[0].fields["Quantity"] == Decimal("4")
        assert result.line_items_skipped == 1


class TestGenerateQuotes:
    """Test the full two-phase run against a fake org."""

    def test_creates_quotes_and_line_items(self, two_opportunities, settings):
        result = generate_quotes(two_opportunities, Job("job-1", "Amount > 0"), settings)

        assert result.opportunities == 2
        assert result.quotes_created == 2
        assert result.line_items_created == 2
        quotes = two_opportunities.created("Quote")
        line_items = two_opportunities.created("QuoteLineItem")
        assert [q.fields["OpportunityId"] for q in quotes] == ["006A", "006B"]
        # US discount of 10% by default
        assert [li.fields["UnitPrice"] for li in line_items] == [Decimal("90"), Decimal("45")]

    def test_query_uses_selector(self, two_opportunities, settings):
        generate_quotes(two_opportunities, Job("job-1", "StageName = 'Closed Won'"), settings)

        soql = two_opportunities.calls[0][1]
        assert soql.endswith("FROM Opportunity WHERE StageName = 'Closed Won'")
        assert "FROM OpportunityLineItems" in soql

    def test_region_setting_changes_discount(self, two_opportunities, tmp_path):
        settings = Settings(db_path=tmp_path / "q.db", discount_region="EU")

        generate_quotes(two_opportunities, Job("job-1", "Id != null"), settings)

        line_items = two_opportunities.created("QuoteLineItem")
        assert line_items[0].fields["UnitPrice"] == Decimal("85")

    def test_no_parents_skips_batches(self, settings):
        """Zero Opportunities: warning, no create calls at all."""
        connection = FakeConnection()
        progress = []

        result = generate_quotes(connection, Job("job-1", "Id = null"), settings, progress_sink=progress.append)

        assert result.opportunities == 0
        assert connection.count_calls("create") == 0
        assert progress == []

    def test_query_failure_is_fatal(self, settings):
        connection = FakeConnection(query_error=SalesforceError("MALFORMED_QUERY", status=400))

        with pytest.raises(QueryError):
            generate_quotes(connection, Job("job-1", "Bogus ="), settings)
        assert connection.count_calls("create") == 0

    def test_failed_quote_chunk_skips_its_children(self, many_opportunities, settings):
        """450 Opportunities, chunk 2 fails: phase 2 only covers chunks 1 and 3."""
        failing = {f"006{i:05d}" for i in range(200, 400)}
        connection = many_opportunities(
            450,
            fail_when=lambda records: records[0].entity_kind == "Quote"
            and records[0].fields["OpportunityId"] in failing,
        )
        progress = []

        result = generate_quotes(connection, Job("job-1", "Id != null"), settings, progress_sink=progress.append)

        assert result.quotes_created == 250
        assert result.quotes_failed == 200
        assert result.line_items_created == 250
        quote_batches = [b for b in connection.batches if b[0].entity_kind == "Quote"]
        assert sorted(len(b) for b in quote_batches) == [50, 200, 200]
        pricebook_entries = {li.fields["PricebookEntryId"] for li in connection.created("QuoteLineItem")}
        assert "01u00199" in pricebook_entries
        assert "01u00200" not in pricebook_entries
        assert "01u00399" not in pricebook_entries
        assert "01u00400" in pricebook_entries
        assert progress == sorted(progress)
        assert progress[-1] == pytest.approx(100.0)

    def test_rejected_quote_records_skip_children(self, two_opportunities, settings):
        two_opportunities.reject = lambda r: r.entity_kind == "Quote" and r.fields["OpportunityId"] == "006A"

        result = generate_quotes(two_opportunities, Job("job-1", "Id != null"), settings)

        assert result.quotes_failed == 1
        assert result.line_items_created == 0
        assert two_opportunities.created("QuoteLineItem") == []
