"""
Database utilities for the RFP engine.

This module provides database connection management and the record store
for vendors, RFPs, proposals and inbound email messages.
Supports both real PostgreSQL and a mock in-memory implementation
for development/testing.
"""

from rfpengine.utils.db.connection import get_db_connection, init_db
from rfpengine.utils.db.store import (
    create_vendor,
    list_vendors,
    get_vendor,
    get_vendor_by_email,
    create_rfp,
    list_rfps,
    get_rfp,
    find_rfp_by_title_keyword,
    create_email_message,
    update_email_status,
    list_emails,
    create_proposal,
    list_proposals,
    list_proposals_for_compare,
)

__all__ = [
    "get_db_connection",
    "init_db",
    "create_vendor",
    "list_vendors",
    "get_vendor",
    "get_vendor_by_email",
    "create_rfp",
    "list_rfps",
    "get_rfp",
    "find_rfp_by_title_keyword",
    "create_email_message",
    "update_email_status",
    "list_emails",
    "create_proposal",
    "list_proposals",
    "list_proposals_for_compare",
]
