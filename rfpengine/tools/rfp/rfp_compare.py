"""
Vendor Proposal Comparison Module.

Ranks the proposals submitted against one RFP on three criteria, each
normalized to [0, 1] across the competing proposals:

- price (lower is better)
- delivery time in days (lower is better)
- warranty in months (higher is better)

A criterion a proposal leaves blank scores a neutral 0.5. When every stated
value of a criterion is identical, each of those proposals scores 1.0.

If the RFP names a currency, only proposals quoted in that currency are
compared, unless none are, in which case all proposals are compared.

The comparison is pure: no I/O, no logging, no shared state.

Usage:
    from rfpengine.tools.rfp.rfp_compare import compare_proposals_for_rfp

    result = compare_proposals_for_rfp(rfp, proposals)
    result.best_proposal_id
    result.to_dict()
"""

import json
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

from rfpengine.tools.rfp.rfp_models import Proposal, Rfp


NEUTRAL_SCORE = 0.5
TIE_SCORE = 1.0


@dataclass(frozen=True)
class CriteriaWeights:
    """Weight of each criterion in the total score."""
    price: float
    delivery: float
    warranty: float

    def to_dict(self) -> dict:
        return {
            "price": self.price,
            "delivery": self.delivery,
            "warranty": self.warranty,
        }


SCORING_WEIGHTS = CriteriaWeights(price=0.45, delivery=0.35, warranty=0.20)

# Reported when there is nothing to score
DISPLAY_WEIGHTS = CriteriaWeights(price=0.60, delivery=0.25, warranty=0.15)


@dataclass(frozen=True)
class ValueRange:
    """Lowest and highest stated value of one criterion."""
    low: float
    high: float


def value_range(values: Iterable[Optional[float]]) -> Optional[ValueRange]:
    """Single pass min/max over the non-null values; None if there are none."""
    low = high = None
    for value in values:
        if value is None:
            continue
        if low is None or value < low:
            low = value
        if high is None or value > high:
            high = value
    if low is None:
        return None
    return ValueRange(low=low, high=high)


def normalize_lower_is_better(
    value: Optional[float], low: Optional[float], high: Optional[float]
) -> float:
    if value is None or low is None or high is None:
        return NEUTRAL_SCORE
    if high == low:
        return TIE_SCORE
    return (high - value) / (high - low)


def normalize_higher_is_better(
    value: Optional[float], low: Optional[float], high: Optional[float]
) -> float:
    if value is None or low is None or high is None:
        return NEUTRAL_SCORE
    if high == low:
        return TIE_SCORE
    return (value - low) / (high - low)


def _bounds(rng: Optional[ValueRange]) -> tuple[Optional[float], Optional[float]]:
    if rng is None:
        return None, None
    return rng.low, rng.high


@dataclass
class ScoreBreakdown:
    """Normalized per-criterion scores and their weighted total."""
    price_score: float
    delivery_score: float
    warranty_score: float
    total_score: float

    def to_dict(self) -> dict:
        return {
            "priceScore": self.price_score,
            "deliveryScore": self.delivery_score,
            "warrantyScore": self.warranty_score,
            "totalScore": self.total_score,
        }


@dataclass
class ScoredProposal:
    """A proposal annotated with its scores."""
    proposal: Proposal
    scores: ScoreBreakdown

    @property
    def id(self) -> str:
        return self.proposal.id

    def to_dict(self) -> dict:
        d = self.proposal.to_dict()
        d["scores"] = self.scores.to_dict()
        return d


@dataclass
class ComparisonResult:
    """Ranked comparison of the proposals for one RFP."""
    rfp_id: str
    rfp_title: str
    currency: Optional[str]
    criteria_weights: CriteriaWeights
    proposals: list[ScoredProposal] = field(default_factory=list)
    best_proposal_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "rfpId": self.rfp_id,
            "rfpTitle": self.rfp_title,
            "currency": self.currency,
            "criteriaWeights": self.criteria_weights.to_dict(),
            "proposals": [p.to_dict() for p in self.proposals],
            "bestProposalId": self.best_proposal_id,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def select_scored_population(
    currency: Optional[str], proposals: Sequence[Proposal]
) -> list[Proposal]:
    """
    Proposals that take part in the comparison.

    Exact, case-sensitive currency match when the RFP names a currency;
    the full list when no proposal matches or no currency is named.
    """
    if not currency:
        return list(proposals)
    matching = [p for p in proposals if p.currency == currency]
    return matching if matching else list(proposals)


def score_proposals(
    proposals: Sequence[Proposal], weights: CriteriaWeights = SCORING_WEIGHTS
) -> list[ScoredProposal]:
    """Score each proposal against the others, in input order."""
    price_low, price_high = _bounds(value_range(p.total_price for p in proposals))
    delivery_low, delivery_high = _bounds(value_range(p.delivery_days for p in proposals))
    warranty_low, warranty_high = _bounds(value_range(p.warranty_months for p in proposals))

    scored = []
    for p in proposals:
        price_score = normalize_lower_is_better(p.total_price, price_low, price_high)
        delivery_score = normalize_lower_is_better(
            p.delivery_days, delivery_low, delivery_high
        )
        warranty_score = normalize_higher_is_better(
            p.warranty_months, warranty_low, warranty_high
        )
        total_score = (
            price_score * weights.price
            + delivery_score * weights.delivery
            + warranty_score * weights.warranty
        )
        scored.append(
            ScoredProposal(
                proposal=p,
                scores=ScoreBreakdown(
                    price_score=price_score,
                    delivery_score=delivery_score,
                    warranty_score=warranty_score,
                    total_score=total_score,
                ),
            )
        )
    return scored


def compare_proposals_for_rfp(
    rfp: Rfp, proposals: Sequence[Proposal]
) -> ComparisonResult:
    """
    Rank the proposals submitted against an RFP.

    Args:
        rfp: The RFP; only id, title and currency are read.
        proposals: Proposals for the RFP, vendor joined.

    Returns:
        ComparisonResult with proposals ordered best first. Ties keep
        their input order.
    """
    if not proposals:
        return ComparisonResult(
            rfp_id=rfp.id,
            rfp_title=rfp.title,
            currency=rfp.currency,
            criteria_weights=DISPLAY_WEIGHTS,
        )

    population = select_scored_population(rfp.currency, proposals)
    scored = score_proposals(population, SCORING_WEIGHTS)

    # sorted() is stable, reverse=True included
    ranked = sorted(scored, key=lambda s: s.scores.total_score, reverse=True)

    return ComparisonResult(
        rfp_id=rfp.id,
        rfp_title=rfp.title,
        currency=rfp.currency,
        criteria_weights=SCORING_WEIGHTS,
        proposals=ranked,
        best_proposal_id=ranked[0].id if ranked else None,
    )
