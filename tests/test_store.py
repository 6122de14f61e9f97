import pytest

from rfpengine.utils.core.errors import DuplicateVendorError, RequestError
from rfpengine.utils.db import store
from rfpengine.utils.db.connection import init_db
from rfpengine.tools.rfp.rfp_models import EmailStatus, ProposalSource


@pytest.fixture
def acme():
    return store.create_vendor("Acme", "sales@acme.com", contact_person="Ann")


@pytest.fixture
def laptops():
    return store.create_rfp("Laptops Procurement", "20 laptops", currency="USD")


class TestVendors:
    def test_create_and_get(self, acme):
        assert store.get_vendor(acme.id) == acme
        assert store.get_vendor_by_email("sales@acme.com") == acme
        assert store.get_vendor("missing") is None

    def test_duplicate_email(self, acme):
        with pytest.raises(DuplicateVendorError) as exc:
            store.create_vendor("Acme 2", "sales@acme.com")
        assert exc.value.status_code == 400
        assert exc.value.to_payload() == {"error": "Vendor with this email already exists"}

    def test_list_in_insertion_order(self, acme):
        globex = store.create_vendor("Globex", "bids@globex.com")
        assert [v.id for v in store.list_vendors()] == [acme.id, globex.id]


class TestRfps:
    def test_list_newest_first(self, laptops):
        desks = store.create_rfp("Desks", "10 desks")
        assert [r.id for r in store.list_rfps()] == [desks.id, laptops.id]

    def test_title_keyword_case_insensitive(self, laptops):
        assert store.find_rfp_by_title_keyword("laptops") == laptops
        assert store.find_rfp_by_title_keyword("monitors") is None

    def test_title_keyword_prefers_newest(self, laptops):
        newer = store.create_rfp("Laptops Procurement 2027", "more laptops")
        assert store.find_rfp_by_title_keyword("LAPTOPS") == newer

    def test_structured_spec_defaults_empty(self, laptops):
        assert store.get_rfp(laptops.id).structured_spec == {}


class TestEmails:
    def test_created_pending(self):
        email = store.create_email_message("sales@acme.com", subject="Quote")
        assert email.status == EmailStatus.PENDING
        assert email.received_at is not None
        assert email.to_dict()["from"] == "sales@acme.com"

    def test_status_update(self):
        email = store.create_email_message("sales@acme.com")
        updated = store.update_email_status(email.id, EmailStatus.PARSED)
        assert updated.status == EmailStatus.PARSED
        assert store.list_emails()[0].status == EmailStatus.PARSED

    def test_update_missing(self):
        assert store.update_email_status("missing", EmailStatus.FAILED) is None

    def test_duplicate_message_id(self):
        store.create_email_message("a@acme.com", message_id="<m1>")
        with pytest.raises(RequestError):
            store.create_email_message("a@acme.com", message_id="<m1>")

    def test_list_newest_first(self):
        first = store.create_email_message("a@acme.com")
        second = store.create_email_message("b@acme.com")
        assert [e.id for e in store.list_emails()] == [second.id, first.id]


class TestProposals:
    def test_create_joins_vendor_and_email(self, acme, laptops):
        email = store.create_email_message("sales@acme.com")
        proposal = store.create_proposal(
            laptops.id,
            acme.id,
            total_price=1000,
            source=ProposalSource.EMAIL,
            email_id=email.id,
        )
        assert proposal.vendor == acme
        assert proposal.email.id == email.id

    def test_list_newest_first_with_joins(self, acme, laptops):
        older = store.create_proposal(laptops.id, acme.id, total_price=1)
        newer = store.create_proposal(laptops.id, acme.id, total_price=2)
        listed = store.list_proposals(laptops.id)
        assert [p.id for p in listed] == [newer.id, older.id]
        assert all(p.vendor == acme for p in listed)

    def test_list_by_source_needs_email(self, acme, laptops):
        email = store.create_email_message("sales@acme.com")
        by_email = store.create_proposal(
            laptops.id, acme.id, source=ProposalSource.EMAIL, email_id=email.id
        )
        store.create_proposal(laptops.id, acme.id, source=ProposalSource.EMAIL)
        store.create_proposal(laptops.id, acme.id)

        listed = store.list_proposals(laptops.id, source=ProposalSource.EMAIL)
        assert [p.id for p in listed] == [by_email.id]
        assert listed[0].email.id == email.id

    def test_compare_listing_in_insertion_order(self, acme, laptops):
        other = store.create_rfp("Desks", "desks")
        first = store.create_proposal(laptops.id, acme.id)
        store.create_proposal(other.id, acme.id)
        second = store.create_proposal(laptops.id, acme.id)

        listed = store.list_proposals_for_compare(laptops.id)
        assert [p.id for p in listed] == [first.id, second.id]
        assert listed[0].vendor == acme
        assert listed[0].email is None


class TestInitDb:
    def test_mock_reset(self, acme):
        init_db()
        assert store.list_vendors() == []
