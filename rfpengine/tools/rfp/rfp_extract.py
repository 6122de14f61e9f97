"""
LLM-based extraction of structured RFP specs and vendor proposals.

Gemini is the primary provider. Any failure on the Gemini path, including
output that does not validate, falls back to Groq once. A Groq failure
propagates to the caller.
"""

from __future__ import annotations

from typing import Type, TypeVar

from pydantic import ValidationError

from rfpengine.utils.core.log import get_logger
from rfpengine.utils.core.errors import ExtractionError
from rfpengine.utils.core.jsonval import parse_model_json
from rfpengine.utils.llm.LLM import call_llm_sync
from rfpengine.utils.llm.LLM_GROQ import call_groq_sync
from rfpengine.tools.rfp.rfp_models import (
    ParsedProposal,
    Rfp,
    RfpStructuredSpec,
    Vendor,
)
from rfpengine.tools.rfp.prompts_rfp import (
    PROPOSAL_SYSTEM_INSTRUCTION,
    RFP_SPEC_SYSTEM_INSTRUCTION,
    build_proposal_prompt,
    build_rfp_spec_prompt,
)

T = TypeVar("T", ParsedProposal, RfpStructuredSpec)


def _validate(raw: str, model_cls: Type[T], *, label: str) -> T:
    data = parse_model_json(raw, label=label)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"{label} output failed validation: {e}") from e


def _extract_with_fallback(
    system_instruction: str, user_prompt: str, model_cls: Type[T], *, label: str
) -> T:
    logger = get_logger()

    try:
        raw = call_llm_sync(
            [user_prompt],
            system_instruction=system_instruction,
            cfg={"temperature": 0.0, "max_output_tokens": 4096},
            debug_caller=label,
        )
        return _validate(raw, model_cls, label=f"{label}/gemini")
    except Exception as e:
        logger.warning(f"Gemini failed for {label}, falling back to Groq: {e}")

    raw = call_groq_sync(user_prompt, system_instruction=system_instruction)
    return _validate(raw, model_cls, label=f"{label}/groq")


def generate_rfp_spec_from_text(natural_language_input: str) -> RfpStructuredSpec:
    """Turn a free-text procurement request into a structured RFP spec."""
    logger = get_logger()
    spec = _extract_with_fallback(
        RFP_SPEC_SYSTEM_INSTRUCTION,
        build_rfp_spec_prompt(natural_language_input),
        RfpStructuredSpec,
        label="rfp_spec",
    )
    logger.info(f"Extracted RFP spec '{spec.title}' with {len(spec.items)} items")
    return spec


def generate_proposal_from_text(text: str, rfp: Rfp, vendor: Vendor) -> ParsedProposal:
    """Extract commercial terms from a vendor's free-text reply."""
    logger = get_logger()
    parsed = _extract_with_fallback(
        PROPOSAL_SYSTEM_INSTRUCTION,
        build_proposal_prompt(text, rfp, vendor),
        ParsedProposal,
        label="proposal",
    )
    logger.info(
        f"Extracted proposal from {vendor.email}: price={parsed.total_price} "
        f"{parsed.currency} delivery={parsed.delivery_days}d warranty={parsed.warranty_months}m"
    )
    return parsed
