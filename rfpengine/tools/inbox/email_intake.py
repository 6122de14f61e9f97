"""
Vendor email to proposal workflow.

    inbound email / pasted text
      -> EmailMessage (PENDING)
      -> LLM extraction (ParsedProposal)
      -> Proposal (source=EMAIL, linked to the email)
      -> EmailMessage (PARSED)

If extraction or the proposal insert fails, the email is marked FAILED and
the error propagates to the caller.
"""

from __future__ import annotations

from typing import Any, Optional

from rfpengine.utils.core.log import bind_tool_logger, get_logger, rebind_rfp_logger
from rfpengine.utils.core.errors import NotFoundError, RequestError
from rfpengine.utils.db import store
from rfpengine.tools.rfp.rfp_models import (
    EmailMessage,
    EmailStatus,
    ParsedProposal,
    Proposal,
    ProposalSource,
    Rfp,
    Vendor,
)
from rfpengine.tools.rfp.rfp_extract import generate_proposal_from_text
from rfpengine.tools.inbox.email_parse import (
    extract_rfp_selector_from_subject,
    parse_inbound_email,
)


EXAMPLE_SUBJECTS = [
    "Laptop Proposal RFPID:cmisghrjt0003peit8md1a9fq",
    "Laptop Proposal RFP: Laptops Procurement",
]


def _resolve_rfp(subject: Optional[str]) -> Rfp:
    selector = extract_rfp_selector_from_subject(subject)

    rfp_id = selector.get("rfpId")
    if rfp_id:
        rfp = store.get_rfp(rfp_id)
        if rfp is None:
            raise NotFoundError(
                "RFP not found for provided RFPID in subject",
                {"subject": subject, "rfpIdFromSubject": rfp_id},
            )
        return rfp

    keyword = selector.get("keyword")
    if keyword:
        rfp = store.find_rfp_by_title_keyword(keyword)
        if rfp is None:
            raise NotFoundError(
                "No RFP found matching keyword from subject",
                {"subject": subject, "keywordFromSubject": keyword},
            )
        return rfp

    raise RequestError(
        "No RFP reference found in email subject. "
        "Please include either 'RFPID:<rfpId>' or 'RFP: <title keyword>' in the subject.",
        {"exampleSubjects": EXAMPLE_SUBJECTS, "subject": subject},
    )


def _proposal_from_email(
    rfp: Rfp, vendor: Vendor, email: EmailMessage, text: str
) -> tuple[Proposal, ParsedProposal, EmailMessage]:
    logger = get_logger()
    try:
        parsed = generate_proposal_from_text(text, rfp, vendor)
        proposal = store.create_proposal(
            rfp_id=rfp.id,
            vendor_id=vendor.id,
            total_price=parsed.total_price,
            currency=parsed.currency if parsed.currency is not None else rfp.currency,
            delivery_days=parsed.delivery_days,
            warranty_months=parsed.warranty_months,
            terms=parsed.terms,
            notes=parsed.notes,
            source=ProposalSource.EMAIL,
            email_id=email.id,
        )
    except Exception as e:
        logger.error(f"Could not turn email {email.id} into a proposal: {e}")
        store.update_email_status(email.id, EmailStatus.FAILED)
        raise

    email = store.update_email_status(email.id, EmailStatus.PARSED) or email
    logger.info(
        f"Email {email.id} from {vendor.email} -> proposal {proposal.id} on RFP {rfp.id}"
    )
    return proposal, parsed, email


def ingest_email_webhook(payload: dict[str, Any]) -> dict:
    """
    Turn an inbound vendor email into a proposal.

    Returns:
        {"message", "proposal", "parsed", "email"}

    Raises:
        RequestError: sender or body missing, unknown sender, no RFP reference
            in the subject.
        NotFoundError: the subject names an RFP that does not exist.
    """
    logger = get_logger()
    inbound = parse_inbound_email(payload)

    if not inbound.from_address or not inbound.text:
        raise RequestError(
            "Missing required 'from' or 'text' fields (CloudMailin format)."
        )

    vendor = store.get_vendor_by_email(inbound.from_address)
    if vendor is None:
        raise RequestError(
            "No vendor found with this 'from' email", {"from": inbound.from_address}
        )

    rfp = _resolve_rfp(inbound.subject)
    logger.debug(f"Email from {vendor.email} matched RFP {rfp.id} '{rfp.title}'")

    email = store.create_email_message(
        from_address=inbound.from_address,
        to=inbound.to_address,
        subject=inbound.subject,
        body_text=inbound.text,
        body_html=inbound.html,
        message_id=inbound.message_id,
    )

    proposal, parsed, email = _proposal_from_email(rfp, vendor, email, inbound.text)
    return {
        "message": "Email parsed successfully",
        "proposal": proposal.to_dict(),
        "parsed": parsed.to_dict(),
        "email": email.to_dict(),
    }


def ingest_proposal_text(
    rfp_id: str,
    vendor_id: Optional[str],
    text: Optional[str],
    email_meta: Optional[dict[str, Any]] = None,
) -> dict:
    """
    Same flow as ingest_email_webhook for a reply pasted in by a user.

    email_meta may carry from, to, subject, bodyHtml, messageId and
    receivedAt; the sender defaults to the vendor's address.
    """
    if not vendor_id or not text:
        raise RequestError("vendorId and text are required")

    rfp = store.get_rfp(rfp_id)
    if rfp is None:
        raise NotFoundError("RFP not found")
    rebind_rfp_logger(rfp.id)
    vendor = store.get_vendor(vendor_id)
    if vendor is None:
        raise NotFoundError("Vendor not found")

    meta = email_meta if isinstance(email_meta, dict) else {}
    email = store.create_email_message(
        from_address=meta.get("from") or vendor.email,
        to=meta.get("to"),
        subject=meta.get("subject"),
        body_text=text,
        body_html=meta.get("bodyHtml"),
        message_id=meta.get("messageId"),
        received_at=meta.get("receivedAt") or None,
    )

    proposal, parsed, _ = _proposal_from_email(rfp, vendor, email, text)
    return {"proposal": proposal.to_dict(), "parsed": parsed.to_dict()}


def email_webhook_main(
    payload: dict[str, Any],
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    bind_tool_logger("email_webhook", None, remote_ip, request_method)
    return ingest_email_webhook(payload)


def proposal_from_text_main(
    rfp_id: str,
    vendor_id: Optional[str],
    text: Optional[str],
    email_meta: Optional[dict[str, Any]] = None,
    remote_ip: Optional[str] = None,
    request_method: Optional[str] = None,
) -> dict:
    bind_tool_logger("proposal_from_text", None, remote_ip, request_method)
    return ingest_proposal_text(rfp_id, vendor_id, text, email_meta)


def list_emails_main(
    remote_ip: Optional[str] = None, request_method: Optional[str] = None
) -> list[dict]:
    bind_tool_logger("list_emails", None, remote_ip, request_method)
    return [e.to_dict() for e in store.list_emails()]
