"""
Inbound email parsing.

Vendors reply to an RFP by email. The inbound mail service posts the message
as JSON (CloudMailin format); this module pulls out the sender, the RFP the
reply refers to and the body.

The subject names the RFP in one of two ways:
    "Laptop Proposal RFPID:cmisghrjt0003peit8md1a9fq"  -> by id
    "Laptop Proposal RFP: Laptops Procurement"         -> by title keyword
"""

import re
from dataclasses import dataclass
from typing import Any, Optional


_ANGLE_ADDR_RE = re.compile(r"<([^>]+)>")
_RFP_ID_RE = re.compile(r"\bRFPID\s*[:\-]\s*([a-zA-Z0-9]+)", re.IGNORECASE)
_RFP_KEYWORD_RE = re.compile(r"\bRFP\s*[:\-]\s*(.+)$", re.IGNORECASE)


@dataclass
class InboundEmail:
    from_address: Optional[str]
    to_address: Optional[str]
    subject: Optional[str]
    text: Optional[str]
    html: Optional[str]
    message_id: Optional[str]


def extract_email_address(raw: Optional[str]) -> Optional[str]:
    """'Acme Sales <Sales@Acme.com>' -> 'sales@acme.com'"""
    if not raw:
        return None
    match = _ANGLE_ADDR_RE.search(raw)
    address = match.group(1) if match else raw
    return address.strip().lower()


def extract_rfp_selector_from_subject(subject: Optional[str]) -> dict:
    """
    Find the RFP reference in a subject line.

    Returns {"rfpId": ...}, {"keyword": ...} or {} when the subject names
    no RFP. An RFPID reference wins over a keyword.
    """
    if not subject:
        return {}

    id_match = _RFP_ID_RE.search(subject)
    if id_match:
        return {"rfpId": id_match.group(1)}

    keyword_match = _RFP_KEYWORD_RE.search(subject)
    if keyword_match:
        keyword = keyword_match.group(1).strip()
        if keyword:
            return {"keyword": keyword}

    return {}


def parse_inbound_email(payload: Optional[dict[str, Any]]) -> InboundEmail:
    payload = payload or {}
    headers = payload.get("headers") or {}
    envelope = payload.get("envelope") or {}

    return InboundEmail(
        from_address=extract_email_address(envelope.get("from") or headers.get("from")),
        to_address=extract_email_address(envelope.get("to") or headers.get("to")),
        subject=headers.get("subject") or None,
        text=payload.get("plain") or None,
        html=payload.get("html") or None,
        message_id=headers.get("message_id") or headers.get("message-id") or None,
    )
