"""
Record store for the RFP engine.

CRUD for vendors, RFPs, proposals and inbound email messages.
Works with both PostgreSQL and mock database backends.

schema
- vendors: id, name, email (unique), contact_person, notes, created_at
- rfps: id, title, natural_language_input, structured_spec JSONB, budget,
  currency, delivery_deadline, payment_terms, minimum_warranty_months, created_at
- proposals: id, rfp_id, vendor_id, total_price, currency, delivery_days,
  warranty_months, terms, notes, source, email_id (unique), created_at
- email_messages: id, from_address, to_address, subject, body_text, body_html,
  message_id (unique), received_at, status, created_at, updated_at
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errors as pgerrors

from rfpengine.utils.core.log import get_logger
from rfpengine.utils.core.jsonval import _coerce_json
from rfpengine.utils.core.errors import DuplicateVendorError, RequestError
from rfpengine.utils.db.connection import DB_TYPE, _mock_db, db_cursor
from rfpengine.tools.rfp.rfp_models import (
    EmailMessage,
    EmailStatus,
    Proposal,
    ProposalSource,
    Rfp,
    Vendor,
    utcnow,
)


def _email_from_row(row: Dict[str, Any]) -> EmailMessage:
    data = dict(row)
    data["from"] = data.pop("from_address")
    data["to"] = data.pop("to_address", None)
    return EmailMessage.model_validate(data)


def _rfp_from_row(row: Dict[str, Any]) -> Rfp:
    data = dict(row)
    data["structured_spec"] = _coerce_json(data.get("structured_spec")) or {}
    return Rfp.model_validate(data)


def _newest_first(records: List[Any]) -> List[Any]:
    """Mock tables keep insertion order; newest first is the reverse."""
    return list(reversed(records))


# Vendors
def create_vendor(
    name: str,
    email: str,
    contact_person: Optional[str] = None,
    notes: Optional[str] = None,
) -> Vendor:
    """
    Create a vendor.

    Raises:
        DuplicateVendorError: a vendor with this email already exists.
    """
    log = get_logger()
    vendor = Vendor(name=name, email=email, contact_person=contact_person, notes=notes)

    if DB_TYPE == "postgres":
        try:
            with db_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO vendors (id, name, email, contact_person, notes, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s)
                """,
                    (
                        vendor.id,
                        vendor.name,
                        vendor.email,
                        vendor.contact_person,
                        vendor.notes,
                        vendor.created_at,
                    ),
                )
        except pgerrors.UniqueViolation as e:
            raise DuplicateVendorError("Vendor with this email already exists") from e
        except psycopg2.Error as e:
            log.error(f"Failed to create vendor: {e}")
            raise
    else:
        if any(v.email == email for v in _mock_db["vendors"].values()):
            raise DuplicateVendorError("Vendor with this email already exists")
        _mock_db["vendors"][vendor.id] = vendor

    log.debug(f"Created vendor {vendor.id} <{vendor.email}>")
    return vendor


def list_vendors() -> List[Vendor]:
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM vendors ORDER BY created_at")
            return [Vendor.model_validate(dict(r)) for r in cur.fetchall()]
    return list(_mock_db["vendors"].values())


def get_vendor(vendor_id: str) -> Optional[Vendor]:
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM vendors WHERE id = %s", (vendor_id,))
            row = cur.fetchone()
            return Vendor.model_validate(dict(row)) if row else None
    return _mock_db["vendors"].get(vendor_id)


def get_vendor_by_email(email: str) -> Optional[Vendor]:
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM vendors WHERE email = %s", (email,))
            row = cur.fetchone()
            return Vendor.model_validate(dict(row)) if row else None
    for vendor in _mock_db["vendors"].values():
        if vendor.email == email:
            return vendor
    return None


# RFPs
def create_rfp(
    title: str,
    natural_language_input: str,
    structured_spec: Optional[Dict[str, Any]] = None,
    budget: Optional[float] = None,
    currency: Optional[str] = None,
    delivery_deadline: Optional[datetime] = None,
    payment_terms: Optional[str] = None,
    minimum_warranty_months: Optional[int] = None,
) -> Rfp:
    log = get_logger()
    rfp = Rfp(
        title=title,
        natural_language_input=natural_language_input,
        structured_spec=structured_spec or {},
        budget=budget,
        currency=currency,
        delivery_deadline=delivery_deadline,
        payment_terms=payment_terms,
        minimum_warranty_months=minimum_warranty_months,
    )

    if DB_TYPE == "postgres":
        try:
            with db_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO rfps (id, title, natural_language_input, structured_spec,
                        budget, currency, delivery_deadline, payment_terms,
                        minimum_warranty_months, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                    (
                        rfp.id,
                        rfp.title,
                        rfp.natural_language_input,
                        json.dumps(rfp.structured_spec),
                        rfp.budget,
                        rfp.currency,
                        rfp.delivery_deadline,
                        rfp.payment_terms,
                        rfp.minimum_warranty_months,
                        rfp.created_at,
                    ),
                )
        except psycopg2.Error as e:
            log.error(f"Failed to create RFP: {e}")
            raise
    else:
        _mock_db["rfps"][rfp.id] = rfp

    log.debug(f"Created RFP {rfp.id} '{rfp.title}'")
    return rfp


def list_rfps() -> List[Rfp]:
    """All RFPs, newest first."""
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM rfps ORDER BY created_at DESC")
            return [_rfp_from_row(r) for r in cur.fetchall()]
    return _newest_first(list(_mock_db["rfps"].values()))


def get_rfp(rfp_id: str) -> Optional[Rfp]:
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM rfps WHERE id = %s", (rfp_id,))
            row = cur.fetchone()
            return _rfp_from_row(row) if row else None
    return _mock_db["rfps"].get(rfp_id)


def find_rfp_by_title_keyword(keyword: str) -> Optional[Rfp]:
    """Newest RFP whose title contains the keyword, case-insensitively."""
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute(
                """
                SELECT * FROM rfps
                WHERE position(lower(%s) in lower(title)) > 0
                ORDER BY created_at DESC
                LIMIT 1
            """,
                (keyword,),
            )
            row = cur.fetchone()
            return _rfp_from_row(row) if row else None

    needle = keyword.lower()
    for rfp in _newest_first(list(_mock_db["rfps"].values())):
        if needle in rfp.title.lower():
            return rfp
    return None


# Email messages
def create_email_message(
    from_address: str,
    to: Optional[str] = None,
    subject: Optional[str] = None,
    body_text: Optional[str] = None,
    body_html: Optional[str] = None,
    message_id: Optional[str] = None,
    received_at: Optional[datetime] = None,
) -> EmailMessage:
    """
    Store an inbound email as PENDING.

    Raises:
        RequestError: an email with the same Message-ID was already stored.
    """
    log = get_logger()
    email = EmailMessage(
        from_=from_address,
        to=to,
        subject=subject,
        body_text=body_text,
        body_html=body_html,
        message_id=message_id,
        received_at=received_at or utcnow(),
    )

    if DB_TYPE == "postgres":
        try:
            with db_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO email_messages (id, from_address, to_address, subject,
                        body_text, body_html, message_id, received_at, status,
                        created_at, updated_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                    (
                        email.id,
                        email.from_,
                        email.to,
                        email.subject,
                        email.body_text,
                        email.body_html,
                        email.message_id,
                        email.received_at,
                        email.status.value,
                        email.created_at,
                        email.updated_at,
                    ),
                )
        except pgerrors.UniqueViolation as e:
            raise RequestError(
                "Email with this Message-ID was already received",
                {"messageId": message_id},
            ) from e
        except psycopg2.Error as e:
            log.error(f"Failed to store email: {e}")
            raise
    else:
        if message_id and any(
            m.message_id == message_id for m in _mock_db["email_messages"].values()
        ):
            raise RequestError(
                "Email with this Message-ID was already received",
                {"messageId": message_id},
            )
        _mock_db["email_messages"][email.id] = email

    log.debug(f"Stored email {email.id} from {email.from_}")
    return email


def update_email_status(email_id: str, status: EmailStatus) -> Optional[EmailMessage]:
    log = get_logger()
    now = utcnow()

    if DB_TYPE == "postgres":
        try:
            with db_cursor() as cur:
                cur.execute(
                    """
                    UPDATE email_messages SET status = %s, updated_at = %s
                    WHERE id = %s
                    RETURNING *
                """,
                    (status.value, now, email_id),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            log.error(f"Failed to update email {email_id}: {e}")
            raise
        updated = _email_from_row(row) if row else None
    else:
        current = _mock_db["email_messages"].get(email_id)
        if current is None:
            return None
        updated = current.model_copy(update={"status": status, "updated_at": now})
        _mock_db["email_messages"][email_id] = updated

    log.debug(f"Email {email_id} -> {status.value}")
    return updated


def list_emails() -> List[EmailMessage]:
    """All stored emails, newest first."""
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute("SELECT * FROM email_messages ORDER BY created_at DESC")
            return [_email_from_row(r) for r in cur.fetchall()]
    return _newest_first(list(_mock_db["email_messages"].values()))


# Proposals
def _join_postgres(cur, rows: List[Dict[str, Any]], with_email: bool) -> List[Proposal]:
    vendor_ids = list({r["vendor_id"] for r in rows})
    email_ids = list({r["email_id"] for r in rows if r.get("email_id")})

    vendors: Dict[str, Vendor] = {}
    if vendor_ids:
        cur.execute("SELECT * FROM vendors WHERE id = ANY(%s)", (vendor_ids,))
        vendors = {r["id"]: Vendor.model_validate(dict(r)) for r in cur.fetchall()}

    emails: Dict[str, EmailMessage] = {}
    if with_email and email_ids:
        cur.execute("SELECT * FROM email_messages WHERE id = ANY(%s)", (email_ids,))
        emails = {r["id"]: _email_from_row(r) for r in cur.fetchall()}

    proposals = []
    for row in rows:
        proposal = Proposal.model_validate(dict(row))
        proposal.vendor = vendors.get(proposal.vendor_id)
        if with_email and proposal.email_id:
            proposal.email = emails.get(proposal.email_id)
        proposals.append(proposal)
    return proposals


def _join_mock(proposal: Proposal, with_email: bool) -> Proposal:
    update = {"vendor": _mock_db["vendors"].get(proposal.vendor_id)}
    if with_email and proposal.email_id:
        update["email"] = _mock_db["email_messages"].get(proposal.email_id)
    return proposal.model_copy(update=update)


def create_proposal(
    rfp_id: str,
    vendor_id: str,
    total_price: Optional[float] = None,
    currency: Optional[str] = None,
    delivery_days: Optional[int] = None,
    warranty_months: Optional[int] = None,
    terms: Optional[str] = None,
    notes: Optional[str] = None,
    source: ProposalSource = ProposalSource.MANUAL,
    email_id: Optional[str] = None,
) -> Proposal:
    """Create a proposal and return it with vendor and email joined."""
    log = get_logger()
    proposal = Proposal(
        rfp_id=rfp_id,
        vendor_id=vendor_id,
        total_price=total_price,
        currency=currency,
        delivery_days=delivery_days,
        warranty_months=warranty_months,
        terms=terms,
        notes=notes,
        source=source,
        email_id=email_id,
    )

    if DB_TYPE == "postgres":
        try:
            with db_cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO proposals (id, rfp_id, vendor_id, total_price, currency,
                        delivery_days, warranty_months, terms, notes, source, email_id,
                        created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING *
                """,
                    (
                        proposal.id,
                        proposal.rfp_id,
                        proposal.vendor_id,
                        proposal.total_price,
                        proposal.currency,
                        proposal.delivery_days,
                        proposal.warranty_months,
                        proposal.terms,
                        proposal.notes,
                        proposal.source.value,
                        proposal.email_id,
                        proposal.created_at,
                    ),
                )
                joined = _join_postgres(cur, [cur.fetchone()], with_email=True)[0]
        except psycopg2.Error as e:
            log.error(f"Failed to create proposal: {e}")
            raise
    else:
        _mock_db["proposals"][proposal.id] = proposal
        joined = _join_mock(proposal, with_email=True)

    log.debug(f"Created proposal {proposal.id} for RFP {rfp_id} ({source.value})")
    return joined


def list_proposals(
    rfp_id: str, source: Optional[ProposalSource] = None
) -> List[Proposal]:
    """Proposals for an RFP, newest first, vendor and email joined."""
    if DB_TYPE == "postgres":
        query = "SELECT * FROM proposals WHERE rfp_id = %s"
        params: tuple = (rfp_id,)
        if source is not None:
            query += " AND source = %s AND email_id IS NOT NULL"
            params += (source.value,)
        query += " ORDER BY created_at DESC"
        with db_cursor() as cur:
            cur.execute(query, params)
            return _join_postgres(cur, cur.fetchall(), with_email=True)

    rows = [p for p in _mock_db["proposals"].values() if p.rfp_id == rfp_id]
    if source is not None:
        rows = [p for p in rows if p.source == source and p.email_id]
    return [_join_mock(p, with_email=True) for p in _newest_first(rows)]


def list_proposals_for_compare(rfp_id: str) -> List[Proposal]:
    """Proposals for an RFP in insertion order, vendor joined."""
    if DB_TYPE == "postgres":
        with db_cursor() as cur:
            cur.execute(
                "SELECT * FROM proposals WHERE rfp_id = %s ORDER BY created_at, id",
                (rfp_id,),
            )
            return _join_postgres(cur, cur.fetchall(), with_email=False)

    return [
        _join_mock(p, with_email=False)
        for p in _mock_db["proposals"].values()
        if p.rfp_id == rfp_id
    ]
