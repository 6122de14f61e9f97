import json

from rfpengine.tools.rfp.rfp_models import Rfp, Vendor


RFP_SPEC_SYSTEM_INSTRUCTION = """
You are an assistant that converts free-text procurement requests into a structured JSON RFP spec.

You MUST respond with ONLY valid JSON. No extra text, no explanations.

JSON shape:
{
  "title": string,
  "items": [
    {
      "name": string,
      "quantity": number,
      "keySpecs": string[]
    }
  ],
  "budget": number | null,
  "currency": string | null,
  "deliveryDeadlineDaysFromNow": number | null,
  "paymentTerms": string | null,
  "minimumWarrantyMonths": number | null
}
""".strip()


PROPOSAL_SYSTEM_INSTRUCTION = """
You are an assistant that reads a vendor's reply to a request for proposal and
extracts its commercial terms as JSON.

You MUST respond with ONLY valid JSON. No extra text, no explanations.

JSON shape:
{
  "totalPrice": number | null,
  "currency": string | null,
  "deliveryDays": number | null,
  "warrantyMonths": number | null,
  "terms": string | null,
  "notes": string | null
}

RULES
- totalPrice is the grand total for the whole offer, not a unit price. If only
  unit prices and quantities are given, multiply and add them up.
- currency is an ISO 4217 code (USD, EUR, INR ...).
- deliveryDays is a whole number of days. Convert weeks (x7) and months (x30).
- warrantyMonths is a whole number of months. Convert years (x12).
- terms holds payment or contractual terms, verbatim where short.
- notes holds anything else worth flagging to the buyer.
- Use null when the information is missing. Never guess a number.
""".strip()


def build_rfp_spec_prompt(natural_language_input: str) -> str:
    return f'''
Free-text procurement request:
"""
{natural_language_input}
"""

Extract as JSON with the exact shape described. Use null when information is missing.
'''.strip()


def _rfp_context(rfp: Rfp) -> str:
    context = {
        "title": rfp.title,
        "currency": rfp.currency,
        "budget": rfp.budget,
        "paymentTerms": rfp.payment_terms,
        "minimumWarrantyMonths": rfp.minimum_warranty_months,
        "items": rfp.structured_spec.get("items", []),
    }
    return json.dumps(context, indent=2, default=str)


def build_proposal_prompt(text: str, rfp: Rfp, vendor: Vendor) -> str:
    return f'''
The buyer sent this RFP:
{_rfp_context(rfp)}

Vendor: {vendor.name} <{vendor.email}>

Vendor reply:
"""
{text}
"""

Extract the vendor's offer as JSON with the exact shape described.
If the reply states no currency, use null.
'''.strip()
