"""
Constraint merging for the Albi Mall assistant.

Combines the constraints extracted from the current message with the ones
carried in the session, and decides where candidates come from:

    session filters  ──┐
                       ├── overlay ──> effective FilterSet
    turn filters     ──┘   (turn wins)

- Follow-ups filter the session's retained products in-process.
- New searches go to the search provider (or the local catalog).
- Naming a product type is a topic change: category, subcategory and
  product type then come from the current turn only.
"""

from dataclasses import replace
from typing import Optional

from core.context import (
    CandidateSource,
    FilterSet,
    FollowupKind,
    Intent,
    IntentType,
    MergeDecision,
    SessionContext,
)
from core.filters import normalize_query
from core.intent import FollowupClassifier, KeywordFollowupClassifier
from core.structured_logging import get_logger
from config.synonyms import PRODUCT_TYPES

# Module-level logger
_logger = get_logger("core.merger")


class ConstraintMerger:
    """
    Decides follow-up vs new search, the effective filters and the candidate source.

    Example:
        merger = ConstraintMerger(remote_search=False)
        decision = merger.merge("under $100", session, FilterSet(max_price=100))
        # MergeDecision(is_followup=True, source=SESSION,
        #               filters=FilterSet(subcategory="tote", product_type="tote", max_price=100))
    """

    def __init__(
        self,
        followup_classifier: Optional[FollowupClassifier] = None,
        remote_search: bool = False,
    ):
        """
        Args:
            followup_classifier: Follow-up detector (keyword-based by default)
            remote_search: True when a remote search provider is configured
        """
        self.followup_classifier = followup_classifier or KeywordFollowupClassifier()
        self.remote_search = remote_search

    def merge(
        self,
        utterance: str,
        session: SessionContext,
        filters: FilterSet,
        intent: Optional[Intent] = None,
    ) -> MergeDecision:
        """
        Merge the current turn's filters with the session's.

        Args:
            utterance: Raw user message
            session: Current session context
            filters: Filters extracted from this message
            intent: Already-classified intent (classified here when None)

        Returns:
            MergeDecision
        """
        if intent is not None and intent.type in (IntentType.FOLLOWUP, IntentType.NEW_SEARCH):
            is_followup = intent.type == IntentType.FOLLOWUP
            kind = intent.followup_kind
            reasoning = intent.reasoning
        else:
            verdict = self.followup_classifier.classify(utterance, session, filters)
            is_followup, kind, reasoning = verdict.is_followup, verdict.kind, verdict.reasoning

        base = session.last_filters
        # A brand we don't carry only applies to the turn that asked for it
        if base.competitor_brand:
            base = replace(base, brand=None, competitor_brand=False)
        if filters.product_type and filters.product_type != session.locked_product_type:
            base = base.without_item_class()

        effective = base.overlay(filters)

        if is_followup and effective.product_type is None and session.locked_product_type:
            self._inject_product_type(effective, session.locked_product_type)

        reference_price = None
        if is_followup and kind == FollowupKind.CHEAPER:
            reference_price = self._reference_price(session)
            if reference_price is not None:
                effective.max_price = round(reference_price - 0.01, 2)
                if effective.min_price is not None and effective.min_price > effective.max_price:
                    effective.min_price = None

        if is_followup:
            source = CandidateSource.SESSION
        elif self.remote_search:
            source = CandidateSource.SEARCH
        else:
            source = CandidateSource.CATALOG

        decision = MergeDecision(
            is_followup=is_followup,
            filters=effective,
            source=source,
            provider_query=self.build_provider_query(utterance, effective),
            kind=kind,
            reference_price=reference_price,
            reasoning=reasoning,
        )

        _logger.debug(
            f"Merged constraints: {effective.describe()}",
            extra={
                "event": "constraint_merge",
                "session_id": session.session_id,
                "filters": effective.to_dict(),
                "candidate_source": source.value,
                "reasoning": reasoning,
            },
        )
        return decision

    def build_provider_query(self, utterance: str, filters: FilterSet) -> str:
        """
        Normalized utterance plus filter terms, without repeated words.

        Example:
            build_provider_query("Çantë e kuqe!", FilterSet(color="red", product_type="bag"))
            -> "bag red"
        """
        words = normalize_query(utterance).split() + normalize_query(filters.filter_terms()).split()
        seen = []
        for word in words:
            if word not in seen:
                seen.append(word)
        return " ".join(seen)

    def _inject_product_type(self, filters: FilterSet, product_type: str) -> None:
        filters.product_type = product_type
        if product_type in PRODUCT_TYPES:
            scope, value, _ = PRODUCT_TYPES[product_type]
            if scope == "category" and filters.category is None:
                filters.category = value
            elif scope == "subcategory" and filters.subcategory is None:
                filters.subcategory = value

    def _reference_price(self, session: SessionContext) -> Optional[float]:
        """Price of the first product recommended last turn, else the cheapest retained one."""
        recommended = session.last_recommended_products()
        if recommended:
            return recommended[0].price
        if session.last_products:
            return min(p.price for p in session.last_products)
        return None
