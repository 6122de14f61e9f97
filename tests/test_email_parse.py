import pytest

from rfpengine.tools.inbox.email_parse import (
    extract_email_address,
    extract_rfp_selector_from_subject,
    parse_inbound_email,
)


class TestExtractEmailAddress:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Acme Sales <Sales@Acme.com>", "sales@acme.com"),
            ("  Sales@Acme.com ", "sales@acme.com"),
            ("<a@b.io>", "a@b.io"),
        ],
    )
    def test_addresses(self, raw, expected):
        assert extract_email_address(raw) == expected

    @pytest.mark.parametrize("raw", [None, ""])
    def test_empty(self, raw):
        assert extract_email_address(raw) is None


class TestSubjectSelector:
    def test_rfp_id(self):
        assert extract_rfp_selector_from_subject(
            "Laptop Proposal RFPID:cmisghrjt0003peit8md1a9fq"
        ) == {"rfpId": "cmisghrjt0003peit8md1a9fq"}

    def test_rfp_id_dash_and_case(self):
        assert extract_rfp_selector_from_subject("re: rfpid - abc123 thanks") == {
            "rfpId": "abc123"
        }

    def test_keyword(self):
        assert extract_rfp_selector_from_subject(
            "Laptop Proposal RFP: Laptops Procurement  "
        ) == {"keyword": "Laptops Procurement"}

    def test_id_wins_over_keyword(self):
        assert extract_rfp_selector_from_subject("RFP: Laptops RFPID:xyz9") == {
            "rfpId": "xyz9"
        }

    def test_needs_word_boundary(self):
        assert extract_rfp_selector_from_subject("XRFP: Laptops") == {}

    @pytest.mark.parametrize("subject", [None, "", "Our quote for laptops"])
    def test_no_selector(self, subject):
        assert extract_rfp_selector_from_subject(subject) == {}


class TestParseInboundEmail:
    def test_envelope_preferred(self):
        inbound = parse_inbound_email(
            {
                "envelope": {"from": "sales@acme.com", "to": "rfp@buyer.com"},
                "headers": {
                    "from": "Other <other@acme.com>",
                    "to": "x@buyer.com",
                    "subject": "Quote RFP: Laptops",
                    "message_id": "<m1@acme.com>",
                },
                "plain": "We offer 10 laptops for $9,000.",
                "html": "<p>We offer</p>",
            }
        )
        assert inbound.from_address == "sales@acme.com"
        assert inbound.to_address == "rfp@buyer.com"
        assert inbound.subject == "Quote RFP: Laptops"
        assert inbound.text.startswith("We offer")
        assert inbound.html == "<p>We offer</p>"
        assert inbound.message_id == "<m1@acme.com>"

    def test_header_fallbacks(self):
        inbound = parse_inbound_email(
            {
                "headers": {
                    "from": "Acme <Sales@Acme.com>",
                    "message-id": "<m2@acme.com>",
                },
                "plain": "hi",
            }
        )
        assert inbound.from_address == "sales@acme.com"
        assert inbound.to_address is None
        assert inbound.subject is None
        assert inbound.message_id == "<m2@acme.com>"

    def test_empty_payload(self):
        inbound = parse_inbound_email(None)
        assert inbound.from_address is None
        assert inbound.text is None
