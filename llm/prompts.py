"""
System prompt and response templates for the Albi Mall assistant.

Contains the prompt sent to the text-generation provider and every
templated reply used on the fallback path.
"""

import json
from typing import Optional, List

from core.context import FilterSet, Product, SessionContext


# =============================================================================
# Product highlights
# =============================================================================

HIGHLIGHT_FEATURE_WORDS = [
    "leather", "adjustable", "spacious", "compact", "multiple", "structured", "versatile",
]

SUBCATEGORY_HIGHLIGHTS = {
    "tote": "spacious and versatile",
    "crossbody": "hands-free convenience",
    "satchel": "structured elegance",
    "clutch": "evening sophistication",
    "backpack": "practical functionality",
    "wallet": "compact organization",
}

DEFAULT_HIGHLIGHT = "A great everyday choice"


def generate_highlight(product: Product) -> str:
    """
    One-line highlight for a product.

    Example:
        >>> generate_highlight(red_leather_tote)
        "saffiano leather, large, spacious and versatile"
    """
    highlights = []
    if product.material:
        highlights.append(product.material.lower())
    if product.size:
        highlights.append(product.size.lower())

    for feature in product.features:
        if any(word in feature.lower() for word in HIGHLIGHT_FEATURE_WORDS):
            highlights.append(feature.lower())
            break

    style = SUBCATEGORY_HIGHLIGHTS.get(product.subcategory.lower())
    if style:
        highlights.append(style)

    return ", ".join(highlights[:3]) or DEFAULT_HIGHLIGHT


def _price(value: float) -> str:
    return f"${value:,.2f}".replace(".00", "")


class SystemPrompts:
    """
    System prompt for the text-generation provider, plus the short
    conversational replies (greeting, farewell, no match, errors).

    Example:
        prompts = SystemPrompts()
        system_prompt = prompts.build_system_prompt(candidates, session)
    """

    def __init__(self, store_brand: str = "Michael Kors", mall_name: str = "Albi Mall"):
        self.store_brand = store_brand
        self.mall_name = mall_name

    def build_system_prompt(
        self,
        candidates: List[Product],
        session: Optional[SessionContext] = None,
        history_limit: int = 6,
        filters: Optional[FilterSet] = None,
    ) -> str:
        """
        Build the system prompt for one turn.

        The candidate list is embedded as RETRIEVED_PRODUCTS and is the only
        permissible recommendation source.

        Args:
            candidates: Products the reply may recommend
            session: Session context for recent history
            history_limit: Messages of history to embed
            filters: Effective filters applied this turn
        """
        product_info = [self.product_payload(p) for p in candidates]

        return f"""You are the {self.mall_name} AI Shopping Assistant, a professional, human-like shopping concierge for {self.store_brand} handbags and accessories. Follow these rules strictly:

1. **Dataset-Only Recommendations**
   - Recommend items exclusively from RETRIEVED_PRODUCTS.
   - NEVER invent products, prices, colors or ids.
   - If RETRIEVED_PRODUCTS is empty, say politely that nothing matches and offer to adjust the filters.

2. **Filters**
   - RETRIEVED_PRODUCTS already satisfy the user's filters (color, price range, category, material, size, occasion). Do not recommend anything else.
   - Display up to 5 items, most relevant first.

3. **Personalized Responses**
   - Friendly, professional and concise.
   - Give each recommended product a one-line highlight (e.g., "Leather, spacious, ideal for everyday use").
   - Use the session context to avoid repeating yourself and to follow refinements naturally.
   - Answer in the language the user wrote in (English or Albanian).

4. **Structured Output**
   - Respond with a single JSON object and nothing else:
     {{"assistant_text": "...", "recommended_products": [{{"id": "...", "title": "...", "highlight": "..."}}], "audit_notes": "..."}}
   - recommended_products ids MUST be ids from RETRIEVED_PRODUCTS.
   - audit_notes is optional: explain filter application or fallback reasoning.

RETRIEVED_PRODUCTS: {json.dumps(product_info, indent=2, ensure_ascii=False)}
SESSION_CONTEXT: {self.build_session_context(session, history_limit, filters)}"""

    def product_payload(self, product: Product) -> dict:
        """Compact view of a product for the prompt."""
        return {
            "id": product.id,
            "name": product.name,
            "price": product.price,
            "color": product.color,
            "category": product.subcategory or product.category,
            "material": product.material,
            "size": product.size,
            "features": list(product.features[:3]),
            "highlight": generate_highlight(product),
        }

    def build_session_context(
        self,
        session: Optional[SessionContext],
        history_limit: int = 6,
        filters: Optional[FilterSet] = None,
    ) -> str:
        """
        Recent messages, applied filters and previous recommendations.

        Example output:
            RECENT CONVERSATION CONTEXT:
            User: show me totes
            Assistant: I found 3 totes...

            APPLIED FILTERS:
            - subcategory: "tote"
        """
        messages = session.get_conversation_history(history_limit) if session else []
        filters = filters if filters is not None else (session.last_filters if session else None)

        if not messages and (filters is None or filters.is_empty()):
            return "No previous conversation context."

        lines = []
        if messages:
            lines.append("RECENT CONVERSATION CONTEXT:")
            for message in messages:
                speaker = "User" if message.role == "user" else "Assistant"
                lines.append(f"{speaker}: {message.content}")

        if filters is not None and not filters.is_empty():
            lines.append("")
            lines.append("APPLIED FILTERS:")
            for key, value in filters.to_dict().items():
                lines.append(f"- {key}: {json.dumps(value, ensure_ascii=False)}")

        if session and session.last_recommended_ids:
            names = [p.name for p in session.last_recommended_products()]
            if names:
                lines.append("")
                lines.append("PREVIOUS RECOMMENDATIONS:")
                lines.append(", ".join(names))

        return "\n".join(lines)

    def format_greeting_response(self) -> str:
        return (
            f"Hello and welcome to {self.mall_name}! I'm your shopping assistant for "
            f"{self.store_brand} handbags and accessories. What are you looking for today?"
        )

    def format_farewell_response(self) -> str:
        return f"Thank you for shopping with {self.mall_name}! Come back any time you need a hand finding the perfect piece."

    def format_no_results_response(self) -> str:
        return (
            "I'm sorry, we currently do not have any items that match your request. "
            "Would you like to see similar products or adjust your filters?"
        )

    def format_brand_unavailable_response(self, brand: str) -> str:
        """
        Example:
            >>> prompts.format_brand_unavailable_response("Gucci")
            "I'm sorry, we don't carry Gucci products. We specialize in Michael Kors ..."
        """
        return (
            f"I'm sorry, we don't carry {brand} products. We specialize in {self.store_brand} "
            f"handbags and accessories. Would you like to see our {self.store_brand} collection instead?"
        )

    def format_error_response(self, error_type: str = "system_error") -> str:
        templates = {
            "system_error": (
                "I'm sorry, something went wrong on my end. "
                "Please try again in a moment."
            ),
            "invalid_input": (
                "I didn't quite understand that. "
                "Could you rephrase your question?"
            ),
        }
        return templates.get(error_type, templates["system_error"])


class ResponseTemplates:
    """
    Templated product descriptions used on the fallback path.

    Every template only mentions the products it is given.
    """

    @staticmethod
    def format_single_product(product: Product) -> str:
        """
        Example:
            "I found the Jet Set Tote in Crimson for $90. This saffiano leather tote
             is a great choice and features zip top, laptop sleeve, gold hardware."
        """
        text = f"I found the {product.name} in {product.color or 'a classic finish'} for {_price(product.price)}."
        kind = " ".join(w for w in (product.material.lower(), product.subcategory.lower()) if w)
        if kind:
            text += f" This {kind} is a great choice"
            if product.features:
                text += f" and features {', '.join(f.lower() for f in product.features[:3])}"
            text += "."
        return text

    @staticmethod
    def format_product_summary(products: List[Product], noun: str = "items") -> str:
        """
        Multi-item summary: count, names of the first three, price range, colors.

        Example:
            "I found 3 totes for you! Here are some great options: A, B, C.
             They range from $80 to $220 and come in colors like Black, Red."
        """
        names = ", ".join(p.name for p in products[:3])
        low = min(p.price for p in products)
        high = max(p.price for p in products)
        colors = []
        for p in products:
            if p.color and p.color not in colors:
                colors.append(p.color)

        text = f"I found {len(products)} {noun} for you! Here are some great options: {names}."
        if low == high:
            text += f" They are all priced at {_price(low)}"
        else:
            text += f" They range from {_price(low)} to {_price(high)}"
        if colors:
            text += f" and come in colors like {', '.join(colors[:3])}"
        return text + "."

    @staticmethod
    def format_product_details(product: Product) -> str:
        """Detail card for one product."""
        lines = [f"Here are the details for the {product.name}:"]
        lines.append(f"- Price: {_price(product.price)}")
        if product.original_price and product.original_price > product.price:
            lines[-1] += f" (was {_price(product.original_price)})"
        if product.color:
            colors = ", ".join(product.colors) if len(product.colors) > 1 else product.color
            lines.append(f"- Color: {colors}")
        if product.material:
            lines.append(f"- Material: {product.material}")
        if product.size:
            lines.append(f"- Size: {product.size}")
        if product.features:
            lines.append(f"- Features: {', '.join(product.features)}")
        if product.rating:
            lines.append(f"- Rating: {product.rating:.1f}/5 ({product.reviews_count} reviews)")
        if product.description:
            lines.append("")
            lines.append(product.description)
        return "\n".join(lines)

    @staticmethod
    def format_cheaper_alternative(product: Product, reference_price: float) -> str:
        saving = reference_price - product.price
        return (
            f"Good news! The {product.name} in {product.color or 'a classic finish'} is "
            f"{_price(product.price)}, which is {_price(saving)} less than the "
            f"{_price(reference_price)} option you were looking at."
        )

    @staticmethod
    def format_no_cheaper_alternative(reference_price: Optional[float], noun: str = "option") -> str:
        if reference_price is None:
            return f"I couldn't find a cheaper {noun} than the ones I've already shown you."
        return (
            f"That's already our most affordable {noun} at {_price(reference_price)}. "
            "Would you like to look at a different style or color?"
        )
