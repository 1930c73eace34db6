"""
New search intent handler.

Merges the turn's filters with the session's, retrieves fresh candidates
(remote provider or local catalog) and replaces the session's retained
products with the constraint-satisfying pool.
"""

from handlers.base import BaseHandler, HandlerContext, HandlerResult


class NewSearchHandler(BaseHandler):
    """Handle new product search queries."""

    def handle(self, ctx: HandlerContext) -> HandlerResult:
        decision = ctx.merger.merge(ctx.query, ctx.session, ctx.filters, ctx.intent)
        ctx.add_debug(f"FILTERS: {decision.filters.describe()} (source={decision.source.value})")
        ctx.add_debug(f"PROVIDER QUERY: {decision.provider_query}")

        retrieval, response = self._retrieve_and_compose(ctx, decision)

        return HandlerResult(
            response=response,
            products_to_set=retrieval.pool,
            filters=decision.filters,
            normalized_query=decision.provider_query,
            decision=decision,
            retrieval=retrieval,
        )
