"""Core business logic for the Albi Mall assistant."""

from core.context import (
    IntentType,
    Intent,
    Product,
    FilterSet,
    SessionContext,
    CandidateSource,
    MergeDecision,
    RetrievalResult,
    AssistantResponse,
)
from core.intent import IntentClassifier
from core.filters import FilterExtractor
from core.merger import ConstraintMerger
from core.search import CandidateRetriever, RetrievalConfig
from core.sessions import SessionStore
from core.cache import TTLCache

__all__ = [
    "IntentType",
    "Intent",
    "Product",
    "FilterSet",
    "SessionContext",
    "CandidateSource",
    "MergeDecision",
    "RetrievalResult",
    "AssistantResponse",
    "IntentClassifier",
    "FilterExtractor",
    "ConstraintMerger",
    "CandidateRetriever",
    "RetrievalConfig",
    "SessionStore",
    "TTLCache",
]
