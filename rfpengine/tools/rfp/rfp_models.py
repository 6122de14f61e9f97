"""
Pydantic models for procurement records.

Stored records (Vendor, Rfp, Proposal, EmailMessage) serialize with
camelCase keys, which is the shape the HTTP API returns. Extraction models
(RfpStructuredSpec, ParsedProposal) describe what the language model is asked
to produce from free text.

The record hierarchy is:
    Rfp
    └── Proposal (one per vendor offer)
        ├── Vendor (joined, display only)
        └── EmailMessage (joined when the proposal came in by email)
"""

from __future__ import annotations

import uuid
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProposalSource(str, Enum):
    MANUAL = "MANUAL"
    EMAIL = "EMAIL"


class EmailStatus(str, Enum):
    PENDING = "PENDING"
    PARSED = "PARSED"
    FAILED = "FAILED"


class RecordModel(BaseModel):
    """Base for records exchanged with the store and the API."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, indent: int = 2) -> str:
        return self.model_dump_json(indent=indent, by_alias=True)


class Vendor(RecordModel):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    contact_person: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Rfp(RecordModel):
    id: str = Field(default_factory=new_id)
    title: str
    natural_language_input: str = ""
    structured_spec: dict[str, Any] = Field(default_factory=dict)
    budget: Optional[float] = None
    currency: Optional[str] = None
    delivery_deadline: Optional[datetime] = None
    payment_terms: Optional[str] = None
    minimum_warranty_months: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)


class EmailMessage(RecordModel):
    id: str = Field(default_factory=new_id)
    from_: str = Field(alias="from")
    to: Optional[str] = None
    subject: Optional[str] = None
    body_text: Optional[str] = None
    body_html: Optional[str] = None
    message_id: Optional[str] = None
    received_at: Optional[datetime] = None
    status: EmailStatus = EmailStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Proposal(RecordModel):
    """
    A vendor's offer against an RFP.

    Price, delivery and warranty are independently optional; None means the
    vendor did not state the value.
    """

    id: str = Field(default_factory=new_id)
    rfp_id: str
    vendor_id: str
    total_price: Optional[float] = None
    currency: Optional[str] = None
    delivery_days: Optional[int] = None
    warranty_months: Optional[int] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    source: ProposalSource = ProposalSource.MANUAL
    email_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    vendor: Optional[Vendor] = None
    email: Optional[EmailMessage] = None


# Extraction outputs


class ExtractionModel(RecordModel):
    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, extra="ignore"
    )


class RfpItem(ExtractionModel):
    name: str
    quantity: float = 1
    key_specs: list[str] = Field(default_factory=list)


class RfpStructuredSpec(ExtractionModel):
    """Structured RFP spec extracted from a free-text procurement request."""

    title: Optional[str] = None
    items: list[RfpItem] = Field(default_factory=list)
    budget: Optional[float] = None
    currency: Optional[str] = None
    delivery_deadline_days_from_now: Optional[int] = None
    payment_terms: Optional[str] = None
    minimum_warranty_months: Optional[int] = None


class ParsedProposal(ExtractionModel):
    """Commercial terms extracted from a vendor's free-text reply."""

    total_price: Optional[float] = None
    currency: Optional[str] = None
    delivery_days: Optional[int] = None
    warranty_months: Optional[int] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
