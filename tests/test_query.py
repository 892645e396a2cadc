"""
Tests for the paginated Opportunity query.
"""

from decimal import Decimal

import pytest

from quotegen.errors import QueryError, SalesforceError
from quotegen.query import build_opportunity_soql, query_all_records

from fakes import FakeConnection, line_item, opportunity, page


class TestQueryAllRecords:
    """Test pagination and parsing."""

    def test_single_page(self, two_opportunities):
        parents = query_all_records(two_opportunities, "SELECT ...")

        assert [p.id for p in parents] == ["006A", "006B"]
        assert len(parents[0].child_rows) == 2
        assert parents[1].child_rows == ()

    def test_child_rows_are_typed(self, two_opportunities):
        parents = query_all_records(two_opportunities, "SELECT ...")

        first = parents[0].child_rows[0]
        assert first.quantity == Decimal("10")
        assert first.unit_price == Decimal("100")
        assert first.pricebook_entry_id == "01uA1"
        assert first.id == "00kA1"
        assert first.product_id == "01tPROD"

    def test_follows_next_records_url(self):
        """All pages are drained in server order."""
        connection = FakeConnection(
            first_page=page([opportunity("006A")], next_url="/services/data/v62.0/query/01gA-2000"),
            more_pages={
                "/services/data/v62.0/query/01gA-2000": page(
                    [opportunity("006B")], next_url="/services/data/v62.0/query/01gA-4000"
                ),
                "/services/data/v62.0/query/01gA-4000": page([opportunity("006C")]),
            },
        )

        parents = query_all_records(connection, "SELECT ...")

        assert [p.id for p in parents] == ["006A", "006B", "006C"]
        assert connection.count_calls("query_more") == 2

    def test_follows_paginated_child_relationship(self):
        """A large line-item subquery is drained too."""
        children = {
            "totalSize": 3,
            "done": False,
            "nextRecordsUrl": "/services/data/v62.0/query/01gB-2",
            "records": [line_item(1, 10, "01u1"), line_item(2, 10, "01u2")],
        }
        parent = {"attributes": {"type": "Opportunity"}, "Id": "006A", "OpportunityLineItems": children}
        connection = FakeConnection(
            first_page=page([parent]),
            more_pages={"/services/data/v62.0/query/01gB-2": page([line_item(3, 10, "01u3")])},
        )

        parents = query_all_records(connection, "SELECT ...")

        assert [r.pricebook_entry_id for r in parents[0].child_rows] == ["01u1", "01u2", "01u3"]

    def test_empty_result(self):
        assert query_all_records(FakeConnection(), "SELECT ...") == []

    def test_incomplete_line_items_skipped(self):
        broken = line_item(1, 10, "01u1")
        broken["UnitPrice"] = None
        connection = FakeConnection(first_page=page([opportunity("006A", [broken, line_item(2, 5, "01u2")])]))

        parents = query_all_records(connection, "SELECT ...")

        assert [r.pricebook_entry_id for r in parents[0].child_rows] == ["01u2"]

    def test_integer_values_parsed(self):
        item = line_item(1, 1, "01u1")
        item["Quantity"] = 3
        item["UnitPrice"] = 20
        connection = FakeConnection(first_page=page([opportunity("006A", [item])]))

        row = query_all_records(connection, "SELECT ...")[0].child_rows[0]

        assert row.quantity == Decimal("3")
        assert row.unit_price == Decimal("20")

    def test_transport_error_raises_query_error(self):
        connection = FakeConnection(query_error=SalesforceError("Salesforce request timed out"))

        with pytest.raises(QueryError):
            query_all_records(connection, "SELECT ...")

    def test_failure_on_later_page_aborts(self):
        """No partial result is returned when a later page fails."""
        connection = FakeConnection(first_page=page([opportunity("006A")], next_url="/query/expired"))

        with pytest.raises(QueryError):
            query_all_records(connection, "SELECT ...")

    def test_record_without_id_is_malformed(self):
        connection = FakeConnection(first_page=page([{"attributes": {"type": "Opportunity"}}]))

        with pytest.raises(QueryError):
            query_all_records(connection, "SELECT ...")

    def test_unfinished_page_without_next_url_is_malformed(self):
        """A page that is not done must say where the rest is."""
        truncated = {"totalSize": 400, "done": False, "records": [opportunity("006A")]}
        connection = FakeConnection(first_page=truncated)

        with pytest.raises(QueryError, match="nextRecordsUrl"):
            query_all_records(connection, "SELECT ...")

    def test_unfinished_child_page_without_next_url_is_malformed(self):
        parent = opportunity("006A")
        parent["OpportunityLineItems"] = {"totalSize": 400, "done": False, "records": [line_item(1, 10)]}
        connection = FakeConnection(first_page=page([parent]))

        with pytest.raises(QueryError):
            query_all_records(connection, "SELECT ...")


def test_build_opportunity_soql():
    soql = build_opportunity_soql("Amount > 1000")
    assert soql == (
        "SELECT Id, (SELECT Id, Product2Id, Quantity, UnitPrice, PricebookEntryId FROM OpportunityLineItems) "
        "FROM Opportunity WHERE Amount > 1000"
    )
