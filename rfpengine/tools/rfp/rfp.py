"""
RFP, vendor and proposal tools called by the API.

Each *_main function binds the per-RFP tool logger, validates its inputs,
talks to the store and returns JSON-ready data. Caller mistakes raise
RequestError / NotFoundError; handle() in api.py maps them onto HTTP
statuses.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from rfpengine.utils.core.log import bind_tool_logger, get_logger, rebind_rfp_logger
from rfpengine.utils.core.errors import NotFoundError, RequestError
from rfpengine.utils.db import store
from rfpengine.tools.rfp.rfp_models import ProposalSource, utcnow
from rfpengine.tools.rfp.rfp_extract import generate_rfp_spec_from_text
from rfpengine.tools.rfp.rfp_compare import compare_proposals_for_rfp


UNTITLED_RFP = "Untitled RFP"


# Vendors
def list_vendors_main(
    remote_ip: Optional[str] = None, request_method: Optional[str] = None
) -> list[dict]:
    bind_tool_logger("list_vendors", None, remote_ip, request_method)
    return [v.to_dict() for v in store.list_vendors()]


def create_vendor_main(
    name: Optional[str],
    email: Optional[str],
    contact_person: Optional[str] = None,
    notes: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    logger = bind_tool_logger("create_vendor", None, remote_ip, request_method)
    if not name or not email:
        raise RequestError("Name and email are required")

    vendor = store.create_vendor(
        name=str(name),
        email=str(email),
        contact_person=str(contact_person) if contact_person else None,
        notes=str(notes) if notes else None,
    )
    logger.info(f"Vendor {vendor.name} <{vendor.email}> registered")
    return vendor.to_dict()


# RFPs
def list_rfps_main(
    remote_ip: Optional[str] = None, request_method: Optional[str] = None
) -> list[dict]:
    bind_tool_logger("list_rfps", None, remote_ip, request_method)
    return [r.to_dict() for r in store.list_rfps()]


def create_rfp_main(
    body: dict[str, Any],
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    logger = bind_tool_logger("create_rfp", None, remote_ip, request_method)
    title = body.get("title")
    natural_language_input = body.get("naturalLanguageInput")
    if not title or not natural_language_input:
        raise RequestError("Title and naturalLanguageInput are required")

    rfp = store.create_rfp(
        title=title,
        natural_language_input=natural_language_input,
        structured_spec=body.get("structuredSpec") or {},
        budget=body.get("budget"),
        currency=body.get("currency"),
        delivery_deadline=body.get("deliveryDeadline") or None,
        payment_terms=body.get("paymentTerms"),
        minimum_warranty_months=body.get("minimumWarrantyMonths"),
    )
    logger.info(f"RFP {rfp.id} '{rfp.title}' created")
    return rfp.to_dict()


def create_rfp_from_text_main(
    natural_language_input: Optional[str],
    title: Optional[str] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    """
    Build an RFP from a free-text request.

    The title is the one given by the caller, else the extracted one, else
    "Untitled RFP". A relative delivery deadline becomes an absolute one
    counted from now.
    """
    logger = bind_tool_logger("rfp_from_text", None, remote_ip, request_method)
    if not natural_language_input:
        raise RequestError("naturalLanguageInput is required")

    spec = generate_rfp_spec_from_text(natural_language_input)

    delivery_deadline = None
    if spec.delivery_deadline_days_from_now is not None:
        delivery_deadline = utcnow() + timedelta(days=spec.delivery_deadline_days_from_now)

    rfp = store.create_rfp(
        title=title or spec.title or UNTITLED_RFP,
        natural_language_input=natural_language_input,
        structured_spec=spec.to_dict(),
        budget=spec.budget,
        currency=spec.currency,
        delivery_deadline=delivery_deadline,
        payment_terms=spec.payment_terms,
        minimum_warranty_months=spec.minimum_warranty_months,
    )
    logger.info(f"RFP {rfp.id} '{rfp.title}' created from text")
    return rfp.to_dict()


# Proposals
def _rfp_logger(rfp_id: str):
    """Per-RFP tool logger once the RFP is known to exist, else the current one."""
    rfp = store.get_rfp(rfp_id)
    if rfp is None:
        return get_logger()
    return rebind_rfp_logger(rfp.id)


def list_proposals_main(
    rfp_id: str,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> list[dict]:
    bind_tool_logger("list_proposals", None, remote_ip, request_method)
    _rfp_logger(rfp_id)
    return [p.to_dict() for p in store.list_proposals(rfp_id)]


def create_proposal_main(
    rfp_id: str,
    body: dict[str, Any],
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    bind_tool_logger("create_proposal", None, remote_ip, request_method)
    vendor_id = body.get("vendorId")
    if not vendor_id:
        raise RequestError("vendorId is required")
    rfp = store.get_rfp(rfp_id)
    if rfp is None:
        raise NotFoundError("RFP not found")
    logger = rebind_rfp_logger(rfp.id)
    if store.get_vendor(vendor_id) is None:
        raise NotFoundError("Vendor not found")

    proposal = store.create_proposal(
        rfp_id=rfp.id,
        vendor_id=vendor_id,
        total_price=body.get("totalPrice"),
        currency=body.get("currency"),
        delivery_days=body.get("deliveryDays"),
        warranty_months=body.get("warrantyMonths"),
        terms=body.get("terms"),
        notes=body.get("notes"),
        source=ProposalSource.MANUAL,
    )
    logger.info(f"Proposal {proposal.id} entered for vendor {vendor_id}")
    return proposal.to_dict()


def list_rfp_emails_main(
    rfp_id: str,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> list[dict]:
    """Email-sourced proposals for an RFP, with vendor and email."""
    bind_tool_logger("list_rfp_emails", None, remote_ip, request_method)
    _rfp_logger(rfp_id)
    return [
        p.to_dict() for p in store.list_proposals(rfp_id, source=ProposalSource.EMAIL)
    ]


def compare_rfp_main(
    rfp_id: str,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    bind_tool_logger("compare_proposals", None, remote_ip, request_method)
    rfp = store.get_rfp(rfp_id)
    if rfp is None:
        raise NotFoundError("RFP not found")
    logger = rebind_rfp_logger(rfp.id)

    proposals = store.list_proposals_for_compare(rfp.id)
    result = compare_proposals_for_rfp(rfp, proposals)
    logger.info(
        f"Compared {len(result.proposals)} of {len(proposals)} proposals; "
        f"best={result.best_proposal_id}"
    )
    return result.to_dict()
