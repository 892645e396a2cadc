"""Typed records passed between the query, derivation and batch stages."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Job:
    """A queued job: which Opportunities to price."""

    job_id: str
    selector: str


@dataclass(frozen=True)
class ChildSourceRow:
    """One OpportunityLineItem returned under its Opportunity."""

    quantity: Decimal
    unit_price: Decimal
    pricebook_entry_id: str
    id: Optional[str] = None
    product_id: Optional[str] = None


@dataclass(frozen=True)
class ParentRecord:
    """An Opportunity with its line items, in server order."""

    id: str
    child_rows: Tuple[ChildSourceRow, ...] = ()


@dataclass(frozen=True)
class CreateRequest:
    entity_kind: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        """Render as an sObject Collections record."""
        payload: Dict[str, Any] = {"attributes": {"type": self.entity_kind}}
        for name, value in self.fields.items():
            # The REST API takes JSON numbers; Decimal is not serializable
            payload[name] = float(value) if isinstance(value, Decimal) else value
        return payload


@dataclass(frozen=True)
class CreateResult:
    success: bool
    new_id: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def ok(cls, new_id: str) -> "CreateResult":
        return cls(success=True, new_id=new_id)

    @classmethod
    def failed(cls, error_message: str) -> "CreateResult":
        return cls(success=False, error_message=error_message)


# Opportunity id -> id of the Quote created for it
CorrelationMap = Dict[str, str]
