"""
Message orchestrator for the Albi Mall assistant.

Coordinates one chat turn:
filter extraction -> intent classification -> handler routing
(merge, retrieve, compose) -> session update -> conversation log.

Also wires the whole assistant from Settings (``build_assistant``).
"""

from dataclasses import dataclass, field, replace
from typing import Any, List, Optional

from core.api_retry import DEFAULT_LLM_RETRY, DEFAULT_SEARCH_RETRY
from core.cache import CacheSweeper, TTLCache
from core.context import AssistantResponse, IntentType, Product, SessionStats, TurnRecord
from core.filters import FilterExtractor
from core.intent import IntentClassifier, KeywordFollowupClassifier
from core.merger import ConstraintMerger
from core.search import CandidateRetriever, RetrievalConfig
from core.search_provider import SearchProvider, TrieveSearchProvider
from core.sessions import SessionStore, generate_session_id
from core.structured_logging import (
    LogContext,
    Timer,
    get_logger,
    log_conversation_turn,
    log_error,
    log_filters,
)
from config.settings import Settings, get_settings
from llm.client import OpenAICompatibleProvider
from llm.response_builder import ComposerConfig, ResponseComposer

from handlers.base import HandlerContext, HandlerResult
from handlers.greeting import GreetingHandler, FarewellHandler
from handlers.search import NewSearchHandler
from handlers.followup import FollowupHandler

# Module-level logger
_logger = get_logger("core.orchestrator")


@dataclass
class OrchestratorComponents:
    """
    All components needed by the orchestrator.

    Created by ``build_assistant`` (or directly in tests) and passed in.
    """
    filter_extractor: Any   # FilterExtractor
    intent_classifier: Any  # IntentClassifier
    merger: Any             # ConstraintMerger
    retriever: Any          # CandidateRetriever
    composer: Any           # ResponseComposer
    sessions: Any           # SessionStore


@dataclass
class ChatReply:
    """
    Outcome of one processed message.

    Attributes:
        session_id: Session the message belongs to (generated when absent)
        response: Composed reply
        intent: Classified intent
        products: Recommended products, in reply order
        debug_lines: Handler trace (debug mode only)
    """
    session_id: str
    response: AssistantResponse
    intent: IntentType
    products: List[Product] = field(default_factory=list)
    debug_lines: List[str] = field(default_factory=list)


# Handler registry - maps intent types to handlers
HANDLERS = {
    IntentType.GREETING: GreetingHandler(),
    IntentType.FAREWELL: FarewellHandler(),
    IntentType.NEW_SEARCH: NewSearchHandler(),
    IntentType.FOLLOWUP: FollowupHandler(),
}


def process_query(
    query: str,
    session_id: str,
    components: OrchestratorComponents,
    debug_mode: bool = False,
) -> ChatReply:
    """
    Process a user message and return the reply.

    Three flows:
    1. Greetings/Farewells -> templated replies
    2. New search -> fresh candidates, retained products replaced
    3. Follow-up -> retained products filtered, retained list kept

    Never raises for provider trouble (the composer degrades) and turns any
    other handler exception into a generic apology.

    Args:
        query: User's message (already validated)
        session_id: Session identifier
        components: All orchestrator components
        debug_mode: Whether to collect a handler trace

    Returns:
        ChatReply
    """
    debug_lines: List[str] = []

    with LogContext(session_id=session_id) as log_ctx:
        session = components.sessions.get_or_create(session_id)
        if debug_mode:
            debug_lines.append(f"CONTEXT: {len(session.last_products)} retained products")

        # Step 1: Extract filters
        with Timer() as timer:
            filters = components.filter_extractor.extract(query)
        log_filters(session_id, query, filters.to_dict(), timer.elapsed_ms)

        # Step 2: Classify intent
        intent = components.intent_classifier.classify(query, session, filters)
        if debug_mode:
            debug_lines.append(f"INTENT: {intent.type.value} (confidence={intent.confidence:.2f})")

        # Step 3: Route to handler
        handler = HANDLERS.get(intent.type, HANDLERS[IntentType.NEW_SEARCH])
        handler_ctx = HandlerContext(
            query=query,
            intent=intent,
            session=session,
            filters=filters,
            debug_mode=debug_mode,
            merger=components.merger,
            retriever=components.retriever,
            composer=components.composer,
            debug_lines=debug_lines,
        )

        # Step 4: Execute handler
        try:
            result = handler.handle(handler_ctx)
        except Exception as e:
            log_error(session_id, e, context=f"{type(handler).__name__} failed")
            if debug_mode:
                debug_lines.append(f"ERROR: {type(e).__name__}: {e}")
            result = HandlerResult(
                response=components.composer.compose_error(f"Internal error: {type(e).__name__}")
            )

        # Step 5: Apply side effects to the session
        recommended_ids = (
            result.response.product_ids if result.retrieval is not None
            else list(session.last_recommended_ids)
        )
        candidates = list(result.retrieval.products) if result.retrieval else []
        by_id = {p.id: p for p in candidates}
        products = [by_id[pid] for pid in result.response.product_ids if pid in by_id]

        components.sessions.update(session_id, TurnRecord(
            user_message=query,
            assistant_text=result.response.assistant_text,
            normalized_query=result.normalized_query,
            filters=result.filters if result.filters is not None else session.last_filters,
            products=result.products_to_set,
            recommended_ids=recommended_ids,
            intent=intent.type,
        ))
        if debug_mode and result.products_to_set is not None:
            debug_lines.append(f"SAVED: {len(result.products_to_set)} products to context")

        # Step 6: Log the turn
        log_conversation_turn(
            session_id=session_id,
            user_query=query,
            intent_result=intent.type.value,
            intent_confidence=intent.confidence,
            products_found=result.products_found,
            products_shown=len(result.response.recommended_products),
            product_ids=result.response.product_ids,
            filters=result.filters.to_dict() if result.filters is not None else {},
            candidate_source=result.retrieval.source.value if result.retrieval else None,
            audit_notes=result.response.audit_text(),
            response_time_ms=log_ctx.elapsed_ms(),
        )

    return ChatReply(
        session_id=session_id,
        response=result.response,
        intent=intent.type,
        products=products,
        debug_lines=debug_lines,
    )


class Assistant:
    """
    The assistant as one injectable object: message handling plus session
    administration, with an optional background cache sweeper.

    Example:
        assistant = build_assistant(Settings(catalog_path="data/sample_products.json"))
        reply = assistant.handle_message("red bag under $100")
        reply.response.assistant_text
        assistant.handle_message("anything cheaper?", session_id=reply.session_id)
    """

    def __init__(
        self,
        components: OrchestratorComponents,
        sweeper: Optional[CacheSweeper] = None,
        catalog: Optional[List[Product]] = None,
        providers: Optional[List[Any]] = None,
        debug_mode: bool = False,
    ):
        self.components = components
        self.sweeper = sweeper
        self.catalog = list(catalog or [])
        self.providers = list(providers or [])
        self.debug_mode = debug_mode

    @property
    def sessions(self) -> SessionStore:
        return self.components.sessions

    def handle_message(self, message: str, session_id: Optional[str] = None) -> ChatReply:
        """
        Process one message. A missing session id starts a new session.
        """
        session_id = session_id or generate_session_id()
        return process_query(message, session_id, self.components, debug_mode=self.debug_mode)

    def clear_session(self, session_id: str) -> bool:
        return self.sessions.clear(session_id)

    def session_snapshot(self, session_id: str) -> Optional[dict]:
        return self.sessions.snapshot(session_id)

    def session_stats(self) -> SessionStats:
        return self.sessions.stats()

    def active_sessions(self) -> List[str]:
        return self.sessions.active_session_ids()

    def start(self) -> None:
        """Start background work (the cache sweeper)."""
        if self.sweeper is not None:
            self.sweeper.start()

    def stop(self) -> None:
        """Stop background work and close provider connections."""
        if self.sweeper is not None:
            self.sweeper.stop()
        for provider in self.providers:
            provider.close()


def build_assistant(
    settings: Optional[Settings] = None,
    catalog: Optional[List[Product]] = None,
    search_provider: Optional[SearchProvider] = None,
    text_provider: Optional[Any] = None,
) -> Assistant:
    """
    Wire an Assistant from configuration.

    Args:
        settings: Settings (defaults to get_settings())
        catalog: Catalog to use instead of loading settings.catalog_path
        search_provider: Overrides the Trieve provider built from settings
        text_provider: Overrides the LLM provider built from settings

    Returns:
        Assistant (sweeper not started; call start())
    """
    # Imported here: the loader pulls in pandas, which only the wiring needs
    from catalog_loader import load_catalog

    settings = settings or get_settings()

    if catalog is None:
        catalog = load_catalog(settings.catalog_path) if settings.catalog_path else []

    providers = []
    if search_provider is None and settings.remote_search_enabled:
        search_provider = TrieveSearchProvider(
            api_key=settings.trieve_api_key,
            dataset_id=settings.trieve_dataset_id,
            base_url=settings.trieve_base_url,
            timeout_seconds=settings.search_timeout,
            retry_config=DEFAULT_SEARCH_RETRY,
        )
        providers.append(search_provider)

    if text_provider is None and settings.llm_enabled:
        text_provider = OpenAICompatibleProvider(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
            timeout_seconds=settings.llm_timeout,
            retry_config=replace(DEFAULT_LLM_RETRY, max_attempts=max(1, settings.llm_max_attempts)),
        )

    search_cache = TTLCache(settings.cache_max_size, settings.search_cache_ttl, name="search")
    response_cache = TTLCache(settings.cache_max_size, settings.response_cache_ttl, name="response")
    sessions = SessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_history=settings.max_history,
        context_pool_limit=settings.context_pool_limit,
    )

    followup_classifier = KeywordFollowupClassifier()
    components = OrchestratorComponents(
        filter_extractor=FilterExtractor(),
        intent_classifier=IntentClassifier(followup_classifier),
        merger=ConstraintMerger(followup_classifier, remote_search=search_provider is not None),
        retriever=CandidateRetriever(
            search_provider=search_provider,
            catalog=catalog,
            cache=search_cache,
            config=RetrievalConfig(
                k=settings.result_limit,
                search_limit=settings.search_limit,
                pool_limit=settings.context_pool_limit,
                store_brand=settings.store_brand,
            ),
        ),
        composer=ResponseComposer(
            provider=text_provider,
            cache=response_cache,
            config=ComposerConfig(
                max_recommendations=min(settings.result_limit, 5),
                history_limit=settings.prompt_history,
                store_brand=settings.store_brand,
            ),
        ),
        sessions=sessions,
    )

    _logger.info(
        f"Assistant ready: {len(catalog)} catalog products, "
        f"search={'trieve' if search_provider else 'catalog'}, "
        f"llm={'on' if text_provider else 'off'}",
        extra={"event": "assistant_ready", "products_found": len(catalog)},
    )

    sweeper = CacheSweeper(
        interval=settings.cache_sweep_interval,
        targets=[search_cache, response_cache, sessions],
    )
    return Assistant(
        components,
        sweeper=sweeper,
        catalog=catalog,
        providers=providers,
        debug_mode=settings.debug,
    )
