"""
Response Composer - turns candidates into the assistant's reply.

Primary path: system prompt with the candidates embedded, one call to the
text-generation provider, reply parsed as JSON and checked against the
candidates.

Fallback path: an ordered list of (predicate, builder) rules evaluated top
to bottom. Used when the provider fails, when there are no candidates, or
when no provider is configured. The first matching rule builds the reply
and its name goes into the audit notes.

Invariants of every reply:
- assistant_text is non-empty
- at most 5 recommended products, all drawn from the candidates
"""

import json
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from core.cache import TTLCache, response_cache_key
from core.context import (
    AssistantResponse,
    FilterSet,
    FollowupKind,
    MergeDecision,
    Product,
    RecommendedProduct,
    RetrievalResult,
    SessionContext,
)
from core.errors import ProviderError
from core.filters import normalize_query
from core.structured_logging import get_logger, log_cache
from config.patterns import (
    ACKNOWLEDGEMENT_MAX_WORDS,
    ACKNOWLEDGEMENT_PATTERNS,
    CHEAPER_PATTERNS,
    has_pattern,
)
from llm.client import TextGenerationProvider
from llm.prompts import ResponseTemplates, SystemPrompts, generate_highlight

# Module-level logger
_logger = get_logger("llm.response_builder")

PARSE_FAILURE_NOTE = "Response generated from raw text due to JSON parsing failure"

# Display nouns for multi-item summaries
PRODUCT_TYPE_NOUNS = {
    "bag": "bags",
    "tote": "totes",
    "crossbody": "crossbody bags",
    "satchel": "satchels",
    "clutch": "clutches",
    "backpack": "backpacks",
    "shoulder": "shoulder bags",
    "wallet": "wallets",
    "shoes": "pairs of shoes",
    "watch": "watches",
    "belt": "belts",
}


# =============================================================================
# Provider reply schema
# =============================================================================

class LLMRecommendation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: Optional[str] = None
    highlight: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        if isinstance(value, (int, float)):
            return str(value)
        return value


class LLMReply(BaseModel):
    """Shape the provider is asked to return."""
    model_config = ConfigDict(extra="ignore")

    assistant_text: str
    recommended_products: List[LLMRecommendation] = []
    audit_notes: Optional[Union[str, List[str]]] = None
    skipped_recommendations: int = 0

    @model_validator(mode="before")
    @classmethod
    def _skip_bad_recommendations(cls, data):
        """Unreadable entries are skipped one by one; a null list is empty."""
        if not isinstance(data, dict):
            return data
        entries = data.get("recommended_products")
        if not isinstance(entries, list):
            entries = [] if entries is None else [entries]
        valid = []
        for entry in entries:
            try:
                valid.append(LLMRecommendation.model_validate(entry))
            except ValidationError:
                continue
        notes = data.get("audit_notes")
        if isinstance(notes, list):
            notes = [n for n in notes if isinstance(n, str)]
        elif not isinstance(notes, str):
            notes = None
        return {
            **data,
            "recommended_products": valid,
            "skipped_recommendations": len(entries) - len(valid),
            "audit_notes": notes,
        }

    @field_validator("assistant_text")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("assistant_text is empty")
        return value.strip()

    def notes(self) -> List[str]:
        if not self.audit_notes:
            return []
        if isinstance(self.audit_notes, str):
            return [self.audit_notes]
        return [n for n in self.audit_notes if n]


def parse_reply(raw: str) -> Optional[LLMReply]:
    """
    Parse a provider reply tolerantly.

    Strips markdown code fences and reads the outermost JSON object.
    Returns None unless a non-empty assistant_text can be read.

    Example:
        >>> parse_reply('```json\\n{"assistant_text": "Hi", "recommended_products": []}\\n```')
        LLMReply(assistant_text="Hi", recommended_products=[], audit_notes=None, skipped_recommendations=0)
    """
    if not raw:
        return None
    text = re.sub(r"```(?:json)?", "", raw).strip()
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start:end + 1])
        return LLMReply.model_validate(data)
    except (json.JSONDecodeError, ValidationError):
        return None


# =============================================================================
# Fallback rules
# =============================================================================

@dataclass
class FallbackContext:
    """Everything a fallback rule may look at."""
    utterance: str
    candidates: List[Product]
    session: Optional[SessionContext]
    filters: FilterSet
    decision: Optional[MergeDecision] = None
    brand_unavailable: Optional[str] = None

    @property
    def text(self) -> str:
        return self.utterance.lower().strip()


@dataclass
class FallbackRule:
    """
    One templated reply.

    Attributes:
        name: Recorded in audit notes ("Fallback rule: <name>")
        predicate: Whether the rule applies
        build: Returns (assistant_text, products to recommend)
    """
    name: str
    predicate: Callable[[FallbackContext], bool]
    build: Callable[[FallbackContext], "tuple[str, List[Product]]"]


@dataclass
class ComposerConfig:
    """
    Attributes:
        max_recommendations: Upper bound on recommended products
        history_limit: Messages of history embedded in the prompt
        store_brand: Brand the store carries
        mall_name: Store name used in replies
    """
    max_recommendations: int = 5
    history_limit: int = 6
    store_brand: str = "Michael Kors"
    mall_name: str = "Albi Mall"


class ResponseComposer:
    """
    Composes the assistant's reply for one turn.

    Example:
        composer = ResponseComposer(provider=OpenAICompatibleProvider(api_key="..."))
        response = composer.compose("red bag under $100", candidates, session)
        response.assistant_text       # always non-empty
        response.recommended_products # <= 5, all from candidates
    """

    def __init__(
        self,
        provider: Optional[TextGenerationProvider] = None,
        cache: Optional[TTLCache] = None,
        config: Optional[ComposerConfig] = None,
    ):
        """
        Args:
            provider: Text-generation provider (None = fallback path only)
            cache: Cache for primary-path replies
            config: Composer configuration
        """
        self.provider = provider
        self.cache = cache
        self.config = config or ComposerConfig()
        self.prompts = SystemPrompts(store_brand=self.config.store_brand, mall_name=self.config.mall_name)
        self.templates = ResponseTemplates()
        self.rules = self.default_rules()

    # =========================================================================
    # Entry points
    # =========================================================================

    def compose(
        self,
        utterance: str,
        candidates: List[Product],
        session: Optional[SessionContext] = None,
        retrieval: Optional[RetrievalResult] = None,
        decision: Optional[MergeDecision] = None,
    ) -> AssistantResponse:
        """
        Compose a reply.

        Args:
            utterance: The user's message
            candidates: Ranked candidates (only these may be recommended)
            session: Session context for history and previous recommendations
            retrieval: Retrieval result (audit notes, brand availability)
            decision: Merge decision (effective filters, follow-up kind)

        Returns:
            AssistantResponse
        """
        candidates = list(candidates)
        notes = list(retrieval.audit_notes) if retrieval else []
        ctx = FallbackContext(
            utterance=utterance,
            candidates=candidates,
            session=session,
            filters=decision.filters if decision else FilterSet(),
            decision=decision,
            brand_unavailable=retrieval.brand_unavailable if retrieval else None,
        )
        session_id = session.session_id if session else None

        if not candidates:
            return self.fallback(ctx, notes)

        if self.provider is None:
            return self.fallback(ctx, notes)

        cache_key = response_cache_key(normalize_query(utterance), [p.id for p in candidates])
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            log_cache(self.cache.name, cache_key, hit=cached is not None)
            if cached is not None:
                return replace(
                    cached,
                    recommended_products=list(cached.recommended_products),
                    audit_notes=list(cached.audit_notes),
                )

        system_prompt = self.prompts.build_system_prompt(
            candidates, session, self.config.history_limit, ctx.filters,
        )
        try:
            raw = self.provider.complete(system_prompt, utterance, session_id=session_id)
        except ProviderError as e:
            _logger.warning(
                f"Text generation failed, using fallback: {e}",
                extra={
                    "event": "composer_provider_error",
                    "session_id": session_id,
                    "provider": e.provider,
                    "error_type": type(e).__name__,
                },
            )
            return self.fallback(ctx, notes + [e.audit_note])

        reply = parse_reply(raw)
        if reply is None:
            return self._raw_text_response(raw, ctx, notes)

        response = self._from_reply(reply, candidates, notes)
        if self.cache is not None:
            self.cache.set(cache_key, response)
        return response

    def compose_greeting(self) -> AssistantResponse:
        return AssistantResponse(assistant_text=self.prompts.format_greeting_response())

    def compose_farewell(self) -> AssistantResponse:
        return AssistantResponse(assistant_text=self.prompts.format_farewell_response())

    def compose_error(self, note: Optional[str] = None) -> AssistantResponse:
        """Generic apology for unexpected internal errors."""
        return AssistantResponse(
            assistant_text=self.prompts.format_error_response("system_error"),
            audit_notes=[note] if note else [],
            used_fallback=True,
        )

    # =========================================================================
    # Primary path helpers
    # =========================================================================

    def _recommend(self, products: List[Product]) -> List[RecommendedProduct]:
        return [
            RecommendedProduct(id=p.id, title=p.name, highlight=generate_highlight(p))
            for p in products[:self.config.max_recommendations]
        ]

    def _from_reply(self, reply: LLMReply, candidates: List[Product], notes: List[str]) -> AssistantResponse:
        by_id = {p.id: p for p in candidates}
        recommended = []
        dropped = reply.skipped_recommendations
        for rec in reply.recommended_products:
            product = by_id.get(rec.id)
            if product is None:
                dropped += 1
                continue
            if any(r.id == product.id for r in recommended):
                continue
            highlight = (rec.highlight or "").strip() or generate_highlight(product)
            recommended.append(RecommendedProduct(id=product.id, title=product.name, highlight=highlight))
            if len(recommended) >= self.config.max_recommendations:
                break

        notes = notes + reply.notes()
        if dropped:
            notes.append(f"Dropped {dropped} recommended product(s) not in the retrieved candidates")
        if not recommended:
            recommended = self._recommend(candidates)
            notes.append("Recommendations taken from the top retrieved candidates")

        return AssistantResponse(
            assistant_text=reply.assistant_text,
            recommended_products=recommended,
            audit_notes=notes,
        )

    def _raw_text_response(self, raw: str, ctx: FallbackContext, notes: List[str]) -> AssistantResponse:
        text = (raw or "").strip()
        if not text:
            return self.fallback(ctx, notes + ["llm returned an empty reply"])
        _logger.info(
            "Provider reply was not valid JSON, using raw text",
            extra={"event": "composer_parse_failure"},
        )
        return AssistantResponse(
            assistant_text=text,
            recommended_products=self._recommend(ctx.candidates),
            audit_notes=notes + [PARSE_FAILURE_NOTE],
            used_fallback=True,
        )

    # =========================================================================
    # Fallback path
    # =========================================================================

    def fallback(self, ctx: FallbackContext, notes: Optional[List[str]] = None) -> AssistantResponse:
        """
        Evaluate the fallback rules in order; the first match builds the reply.

        Products the rule returns that are not candidates are dropped.
        """
        notes = list(notes or [])
        allowed = {p.id for p in ctx.candidates}

        for rule in self.rules:
            if not rule.predicate(ctx):
                continue
            text, products = rule.build(ctx)
            products = [p for p in products if p.id in allowed]
            notes.append(f"Fallback rule: {rule.name}")
            _logger.info(
                f"Fallback rule applied: {rule.name}",
                extra={"event": "fallback_response", "fallback_rule": rule.name},
            )
            return AssistantResponse(
                assistant_text=text or self.prompts.format_no_results_response(),
                recommended_products=self._recommend(products),
                audit_notes=notes,
                used_fallback=True,
            )

        # The last default rule always matches; kept for custom rule lists
        return AssistantResponse(
            assistant_text=self.prompts.format_no_results_response(),
            audit_notes=notes,
            used_fallback=True,
        )

    def default_rules(self) -> List[FallbackRule]:
        """
        Priority order:
        1. product_details - affirmation after a single recommendation
        2. cheaper_alternative - "anything cheaper?"
        3. no_match - zero candidates (brand-specific message when relevant)
        4. single_product - exactly one candidate
        5. product_summary - everything else
        """
        return [
            FallbackRule("product_details", self._wants_details, self._build_details),
            FallbackRule("cheaper_alternative", self._wants_cheaper, self._build_cheaper),
            FallbackRule("no_match", lambda ctx: not ctx.candidates, self._build_no_match),
            FallbackRule("single_product", lambda ctx: len(ctx.candidates) == 1, self._build_single),
            FallbackRule("product_summary", lambda ctx: True, self._build_summary),
        ]

    # === Predicates ===

    def _single_recommended(self, ctx: FallbackContext) -> Optional[Product]:
        if ctx.session is None or len(ctx.session.last_recommended_ids) != 1:
            return None
        product_id = ctx.session.last_recommended_ids[0]
        for product in ctx.candidates:
            if product.id == product_id:
                return product
        return None

    def _wants_details(self, ctx: FallbackContext) -> bool:
        if len(ctx.text.split()) > ACKNOWLEDGEMENT_MAX_WORDS:
            return False
        if not has_pattern(ctx.text, ACKNOWLEDGEMENT_PATTERNS):
            return False
        return self._single_recommended(ctx) is not None

    def _wants_cheaper(self, ctx: FallbackContext) -> bool:
        asked = (ctx.decision is not None and ctx.decision.kind == FollowupKind.CHEAPER) \
            or has_pattern(ctx.text, CHEAPER_PATTERNS)
        # Needs an earlier price to compare against
        return asked and self._reference_price(ctx) is not None

    # === Builders ===

    def _build_details(self, ctx: FallbackContext):
        product = self._single_recommended(ctx)
        return self.templates.format_product_details(product), [product]

    def _reference_price(self, ctx: FallbackContext) -> Optional[float]:
        if ctx.decision is not None and ctx.decision.reference_price is not None:
            return ctx.decision.reference_price
        if ctx.session is None:
            return None
        recommended = ctx.session.last_recommended_products()
        if recommended:
            return recommended[0].price
        if ctx.session.last_products:
            return min(p.price for p in ctx.session.last_products)
        return None

    def _build_cheaper(self, ctx: FallbackContext):
        reference = self._reference_price(ctx)
        noun = self._noun(ctx.filters, singular=True)
        cheaper = [p for p in ctx.candidates if p.price < reference] if reference is not None else []
        if not cheaper:
            return self.templates.format_no_cheaper_alternative(reference, noun), []
        return self.templates.format_cheaper_alternative(cheaper[0], reference), cheaper

    def _build_no_match(self, ctx: FallbackContext):
        if ctx.brand_unavailable:
            return self.prompts.format_brand_unavailable_response(ctx.brand_unavailable), []
        return self.prompts.format_no_results_response(), []

    def _build_single(self, ctx: FallbackContext):
        product = ctx.candidates[0]
        return self.templates.format_single_product(product), [product]

    def _build_summary(self, ctx: FallbackContext):
        products = ctx.candidates[:self.config.max_recommendations]
        return self.templates.format_product_summary(ctx.candidates, self._noun(ctx.filters)), products

    @staticmethod
    def _noun(filters: FilterSet, singular: bool = False) -> str:
        product_type = filters.product_type
        if singular:
            if product_type in ("crossbody", "shoulder"):
                return f"{product_type} bag"
            return product_type or "option"
        if product_type:
            return PRODUCT_TYPE_NOUNS.get(product_type, f"{product_type}s")
        return "items"
