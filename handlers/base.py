"""
Base handler and context classes for the assistant's intent handlers.

Provides the common interface and shared context for all handlers.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional
from abc import ABC, abstractmethod

from core.context import (
    AssistantResponse,
    FilterSet,
    Intent,
    MergeDecision,
    Product,
    RetrievalResult,
    SessionContext,
)


@dataclass
class HandlerContext:
    """
    Context passed to all intent handlers.

    Contains everything a handler needs to process a message:
    - The message itself and the filters extracted from it
    - Classified intent
    - Session context (read-only; the orchestrator applies the result)
    - Component references

    This avoids passing a long parameter list to each handler.
    """
    query: str
    intent: Intent
    session: SessionContext
    filters: FilterSet
    debug_mode: bool = False

    # Component references (set by the orchestrator)
    merger: Any = None
    retriever: Any = None
    composer: Any = None

    # Debug output collector
    debug_lines: List[str] = field(default_factory=list)

    @property
    def session_id(self) -> str:
        return self.session.session_id

    def add_debug(self, message: str) -> None:
        if self.debug_mode:
            self.debug_lines.append(message)


@dataclass
class HandlerResult:
    """
    Result returned by intent handlers.

    Contains the reply and the side effects the orchestrator applies:
    - products_to_set: replaces the session's retained products (None keeps them)
    - filters: effective filters to remember (None keeps the previous ones)
    """
    response: AssistantResponse
    products_to_set: Optional[List[Product]] = None
    filters: Optional[FilterSet] = None
    normalized_query: str = ""
    decision: Optional[MergeDecision] = None
    retrieval: Optional[RetrievalResult] = None

    @property
    def products_found(self) -> int:
        return len(self.retrieval.pool) if self.retrieval else 0


class BaseHandler(ABC):
    """
    Base class for all intent handlers.

    Each handler processes a specific intent type and returns a HandlerResult.
    Handlers are stateless; all state is in HandlerContext.
    """

    @abstractmethod
    def handle(self, ctx: HandlerContext) -> HandlerResult:
        """
        Process the intent and return a result.

        Args:
            ctx: Handler context with query, intent, and all components

        Returns:
            HandlerResult with response and any side effects
        """
        pass

    def _retrieve_and_compose(
        self,
        ctx: HandlerContext,
        decision: MergeDecision,
        context_products: Optional[List[Product]] = None,
    ) -> "tuple[RetrievalResult, AssistantResponse]":
        """Run retrieval for a merge decision, then compose the reply from its candidates."""
        retrieval = ctx.retriever.retrieve(
            decision.provider_query,
            decision.filters,
            decision.source,
            context_products=context_products,
            session_id=ctx.session_id,
        )
        ctx.add_debug(
            f"RETRIEVE: source={retrieval.source.value} considered={retrieval.considered} "
            f"excluded={retrieval.excluded} kept={len(retrieval.pool)}"
        )

        response = ctx.composer.compose(
            ctx.query,
            retrieval.products,
            ctx.session,
            retrieval=retrieval,
            decision=decision,
        )
        return retrieval, response
