"""
Follow-up intent handler.

Handles turns that refine the products already shown ("under $100",
"in black", "anything cheaper?", "yes, show me"). Candidates come from the
session's retained products, filtered in-process; the retained list itself
is kept so later turns still have their working set.
"""

from core.context import CandidateSource
from handlers.base import BaseHandler, HandlerContext, HandlerResult


class FollowupHandler(BaseHandler):
    """Handle follow-up questions about the products already shown."""

    def handle(self, ctx: HandlerContext) -> HandlerResult:
        decision = ctx.merger.merge(ctx.query, ctx.session, ctx.filters, ctx.intent)
        kind = decision.kind.value if decision.kind else "none"
        ctx.add_debug(f"FOLLOWUP: kind={kind} filters={decision.filters.describe()}")
        if decision.reference_price is not None:
            ctx.add_debug(f"REFERENCE PRICE: ${decision.reference_price:g}")

        retrieval, response = self._retrieve_and_compose(
            ctx, decision, context_products=ctx.session.last_products,
        )

        # A follow-up the merger demoted to a fresh search replaces the working set
        products_to_set = None if decision.source is CandidateSource.SESSION else retrieval.pool

        return HandlerResult(
            response=response,
            products_to_set=products_to_set,
            filters=decision.filters,
            normalized_query=decision.provider_query,
            decision=decision,
            retrieval=retrieval,
        )
