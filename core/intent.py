"""
Intent classification for the Albi Mall assistant.

Determines whether a message is a greeting, a farewell, a follow-up on the
products already shown, or a new search.

Follow-up detection sits behind the FollowupClassifier interface. The
default KeywordFollowupClassifier uses the cue lists in config/patterns.py;
a model-based classifier can be dropped in without touching the merger.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from core.context import FilterSet, FollowupKind, Intent, IntentType, SessionContext
from core.structured_logging import get_logger
from config.patterns import (
    ACKNOWLEDGEMENT_MAX_WORDS,
    ACKNOWLEDGEMENT_PATTERNS,
    CHEAPER_PATTERNS,
    FAREWELL_PATTERNS,
    GREETING_PATTERNS,
    PRICE_CUE_PATTERNS,
    has_pattern,
)

# Module-level logger
_logger = get_logger("core.intent")


@dataclass(frozen=True)
class FollowupVerdict:
    is_followup: bool
    kind: Optional[FollowupKind] = None
    reasoning: str = ""


class FollowupClassifier(ABC):
    """
    Decides whether a turn refines the session's previous results.

    Implementations must be pure: the same utterance, session and filters
    always yield the same verdict.
    """

    @abstractmethod
    def classify(self, utterance: str, session: SessionContext, filters: FilterSet) -> FollowupVerdict:
        """
        Args:
            utterance: Raw user message
            session: Current session context (read-only)
            filters: Filters extracted from this utterance

        Returns:
            FollowupVerdict
        """
        pass


class KeywordFollowupClassifier(FollowupClassifier):
    """
    Keyword-based follow-up detection.

    A turn is a follow-up only when the session holds products, and the
    utterance does not name a product type, and one of these holds:
    1. It asks for something cheaper
    2. It carries a constraint cue (price word, bare color/material, size)
    3. It is a short acknowledgement or detail request ("yes", "show me")

    Example:
        classifier = KeywordFollowupClassifier()
        verdict = classifier.classify("under $100", session, filters)
        # FollowupVerdict(is_followup=True, kind=CONSTRAINT, ...)
    """

    def classify(self, utterance: str, session: SessionContext, filters: FilterSet) -> FollowupVerdict:
        text = utterance.lower().strip()

        if not session.has_products():
            return FollowupVerdict(False, reasoning="no retained products")

        # Naming a product type means the user is changing topic
        if filters.product_type:
            return FollowupVerdict(False, reasoning=f"names product type '{filters.product_type}'")

        if has_pattern(text, CHEAPER_PATTERNS):
            return FollowupVerdict(True, FollowupKind.CHEAPER, "asks for a cheaper alternative")

        if self._has_constraint_cue(text, filters):
            return FollowupVerdict(True, FollowupKind.CONSTRAINT, "adds a constraint to previous results")

        if len(text.split()) <= ACKNOWLEDGEMENT_MAX_WORDS and has_pattern(text, ACKNOWLEDGEMENT_PATTERNS):
            return FollowupVerdict(True, FollowupKind.ACKNOWLEDGEMENT, "acknowledgement or detail request")

        return FollowupVerdict(False, reasoning="no follow-up cue")

    def _has_constraint_cue(self, text: str, filters: FilterSet) -> bool:
        if filters.has_price() or has_pattern(text, PRICE_CUE_PATTERNS):
            return True
        return any(v is not None for v in (filters.color, filters.material, filters.size))


class IntentClassifier:
    """
    Classifies user intent.

    Priority:
    1. GREETING - short greeting without shopping content
    2. FAREWELL - short goodbye/thanks without shopping content
    3. FOLLOWUP / NEW_SEARCH - decided by the follow-up classifier

    Example:
        classifier = IntentClassifier()
        intent = classifier.classify("Hello!", session, FilterSet())
        # Returns: Intent(type=GREETING, confidence=1.0, ...)
    """

    GREETING_MAX_WORDS = 4
    FAREWELL_MAX_WORDS = 6

    def __init__(self, followup_classifier: Optional[FollowupClassifier] = None):
        self.followup_classifier = followup_classifier or KeywordFollowupClassifier()

    def classify(self, prompt: str, session: SessionContext, filters: FilterSet) -> Intent:
        """
        Classify user intent.

        Args:
            prompt: User's message
            session: Session context (retained products, last filters)
            filters: Filters extracted from this message

        Returns:
            Intent object with type, confidence, and reasoning
        """
        prompt_lower = prompt.lower()
        word_count = len(prompt.split())
        shopping = not filters.is_empty()

        _logger.debug(
            "Classifying intent",
            extra={
                "event": "intent_classify_start",
                "session_id": session.session_id,
                "word_count": word_count,
                "has_product_context": session.has_products(),
            },
        )

        if not shopping and word_count <= self.GREETING_MAX_WORDS and has_pattern(prompt_lower, GREETING_PATTERNS):
            return Intent(
                type=IntentType.GREETING,
                confidence=1.0,
                reasoning="User sent a greeting",
            )

        if not shopping and word_count <= self.FAREWELL_MAX_WORDS and self._is_farewell(prompt_lower):
            return Intent(
                type=IntentType.FAREWELL,
                confidence=1.0,
                reasoning="User is ending the conversation",
            )

        verdict = self.followup_classifier.classify(prompt, session, filters)
        if verdict.is_followup:
            return Intent(
                type=IntentType.FOLLOWUP,
                confidence=0.9,
                reasoning=verdict.reasoning,
                followup_kind=verdict.kind,
            )

        return Intent(
            type=IntentType.NEW_SEARCH,
            confidence=0.9 if shopping else 0.6,
            reasoning=verdict.reasoning or "User is searching for products",
        )

    def _is_farewell(self, text: str) -> bool:
        # "thanks, what about wallets?" is still a question
        if re.search(r'\?|\b(?:what|which|show|any|do you)\b', text):
            return False
        return has_pattern(text, FAREWELL_PATTERNS)
