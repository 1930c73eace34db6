"""
Greeting and farewell intent handlers.

Simple handlers for conversational intents that don't require
product retrieval.
"""

from handlers.base import BaseHandler, HandlerContext, HandlerResult


class GreetingHandler(BaseHandler):
    """Handle greeting intent."""

    def handle(self, ctx: HandlerContext) -> HandlerResult:
        return HandlerResult(response=ctx.composer.compose_greeting())


class FarewellHandler(BaseHandler):
    """Handle farewell intent."""

    def handle(self, ctx: HandlerContext) -> HandlerResult:
        return HandlerResult(response=ctx.composer.compose_farewell())
