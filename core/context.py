"""
Core data models for the Albi Mall assistant.

Defines all data structures passed between the extractor, session store,
merger, retriever and composer. These are plain dataclasses; the only
validation happens at the edges (``Product.from_dict`` for catalog and
provider data, ``FilterExtractor`` for user text).
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional


# =============================================================================
# Intents
# =============================================================================

class IntentType(Enum):
    """
    User intent types.

    Priority order:
    1. GREETING - Simple greetings
    2. FAREWELL - Goodbye / thanks
    3. FOLLOWUP - Refines or asks about the products already shown
    4. NEW_SEARCH - Anything else
    """
    GREETING = "greeting"
    FAREWELL = "farewell"
    NEW_SEARCH = "new_search"
    FOLLOWUP = "followup"


class FollowupKind(Enum):
    """Why a turn was judged to be a follow-up."""
    CONSTRAINT = "constraint"            # "under $100", "in black"
    ACKNOWLEDGEMENT = "acknowledgement"  # "yes", "show me", "details"
    CHEAPER = "cheaper"                  # "anything cheaper?"


@dataclass
class Intent:
    """
    User intent with metadata.

    Attributes:
        type: Intent classification
        confidence: Confidence score (0.0-1.0)
        reasoning: Why this intent was selected
        followup_kind: Set when type is FOLLOWUP
    """
    type: IntentType
    confidence: float
    reasoning: str
    followup_kind: Optional[FollowupKind] = None

    def __str__(self) -> str:
        return f"Intent({self.type.value}, confidence={self.confidence:.2f})"


# =============================================================================
# Products
# =============================================================================

def _as_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        # CSV exports store lists as "a|b|c" or "a, b, c"
        sep = "|" if "|" in value else ","
        return tuple(v.strip() for v in value.split(sep) if v.strip())
    if isinstance(value, (list, tuple, set)):
        return tuple(str(v).strip() for v in value if v is not None and str(v).strip())
    return (str(value),)


def _as_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


@dataclass(frozen=True)
class Product:
    """
    Catalog entry. Immutable for the lifetime of the process.

    Attributes:
        id: Stable unique identifier
        name: Display name
        price: Non-negative price
        color: Primary color
        colors: All available colors (always contains the primary color)
        features: Ordered feature strings
        tags: Ordered tag strings
        rating: 0-5
        reviews_count: Non-negative review count
    """
    id: str
    name: str
    price: float
    brand: str = ""
    category: str = ""
    subcategory: str = ""
    original_price: Optional[float] = None
    discount_percentage: Optional[float] = None
    color: str = ""
    colors: tuple = ()
    size: str = ""
    sizes: tuple = ()
    material: str = ""
    description: str = ""
    features: tuple = ()
    tags: tuple = ()
    availability: str = "in_stock"
    rating: float = 0.0
    reviews_count: int = 0
    image_url: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        """
        Build a Product from a loosely-shaped dict (catalog row or provider document).

        Raises:
            ValueError: if id, name or a valid non-negative price is missing
        """
        product_id = data.get("id") or data.get("product_id") or data.get("tracking_id")
        name = data.get("name") or data.get("title")
        price = _as_float(data.get("price"))
        if product_id is None or str(product_id).strip() == "":
            raise ValueError("product has no id")
        if not name:
            raise ValueError(f"product {product_id} has no name")
        if price is None or price < 0:
            raise ValueError(f"product {product_id} has no valid price")

        color = str(data.get("color") or "").strip()
        colors = _as_tuple(data.get("colors"))
        if color and color.lower() not in (c.lower() for c in colors):
            colors = (color,) + colors
        if not color and colors:
            color = colors[0]

        size = str(data.get("size") or "").strip()
        sizes = _as_tuple(data.get("sizes"))
        if size and size not in sizes:
            sizes = (size,) + sizes

        rating = _as_float(data.get("rating")) or 0.0
        reviews = _as_float(data.get("reviews_count") or data.get("review_count")) or 0

        return cls(
            id=str(product_id).strip(),
            name=str(name).strip(),
            price=round(price, 2),
            brand=str(data.get("brand") or "").strip(),
            category=str(data.get("category") or "").strip(),
            subcategory=str(data.get("subcategory") or data.get("sub_category") or "").strip(),
            original_price=_as_float(data.get("original_price")),
            discount_percentage=_as_float(data.get("discount_percentage")),
            color=color,
            colors=colors,
            size=size,
            sizes=sizes,
            material=str(data.get("material") or "").strip(),
            description=str(data.get("description") or "").strip(),
            features=_as_tuple(data.get("features")),
            tags=_as_tuple(data.get("tags")),
            availability=str(data.get("availability") or "in_stock").strip(),
            rating=min(max(rating, 0.0), 5.0),
            reviews_count=max(int(reviews), 0),
            image_url=str(data.get("image_url") or data.get("image") or "").strip(),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "category": self.category,
            "subcategory": self.subcategory,
            "price": self.price,
            "original_price": self.original_price,
            "discount_percentage": self.discount_percentage,
            "color": self.color,
            "colors": list(self.colors),
            "size": self.size,
            "sizes": list(self.sizes),
            "material": self.material,
            "description": self.description,
            "features": list(self.features),
            "tags": list(self.tags),
            "availability": self.availability,
            "rating": self.rating,
            "reviews_count": self.reviews_count,
            "image_url": self.image_url,
        }

    def searchable_text(self) -> str:
        """All matchable text, lower-cased and space-joined."""
        parts = [
            self.name, self.brand, self.category, self.subcategory,
            self.color, " ".join(self.colors), self.material, self.size,
            self.description, " ".join(self.features), " ".join(self.tags),
        ]
        return " ".join(p for p in parts if p).lower()


# =============================================================================
# Filters
# =============================================================================

# Fields that describe which item class the user is after
ITEM_CLASS_FIELDS = ("category", "subcategory", "product_type")

FILTER_FIELDS = (
    "color", "min_price", "max_price", "category", "subcategory",
    "material", "size", "brand", "occasion", "product_type",
)


@dataclass
class FilterSet:
    """
    Structured constraints extracted from one utterance.

    Every field is optional; an empty FilterSet filters nothing. When both
    price bounds are present, min_price <= max_price.

    Attributes:
        color: Canonical color (e.g., "red")
        min_price / max_price: Inclusive price bounds
        category: Catalog category (e.g., "bags")
        subcategory: Catalog subcategory (e.g., "tote")
        material: Canonical material (e.g., "leather")
        size: "small", "medium" or "large"
        brand: Lower-cased brand name
        competitor_brand: True when brand is one we do not carry
        occasion: Canonical occasion (e.g., "work")
        product_type: Canonical product type (e.g., "tote", "bag")
    """
    color: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    material: Optional[str] = None
    size: Optional[str] = None
    brand: Optional[str] = None
    competitor_brand: bool = False
    occasion: Optional[str] = None
    product_type: Optional[str] = None

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in FILTER_FIELDS)

    def has_price(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def resolved_fields(self) -> list[str]:
        return [name for name in FILTER_FIELDS if getattr(self, name) is not None]

    def overlay(self, newer: "FilterSet") -> "FilterSet":
        """
        Return a copy with every field `newer` resolved taking precedence.

        A carried price bound that conflicts with a bound `newer` sets is
        dropped: "under $50" after "over $200" means under $50.

        Example:
            FilterSet(color="red", max_price=100).overlay(FilterSet(color="black"))
            -> FilterSet(color="black", max_price=100)
        """
        merged = replace(self)
        for name in newer.resolved_fields():
            setattr(merged, name, getattr(newer, name))
        if newer.brand is not None:
            merged.competitor_brand = newer.competitor_brand
        if (merged.min_price is not None and merged.max_price is not None
                and merged.min_price > merged.max_price):
            if newer.max_price is not None and newer.min_price is None:
                merged.min_price = None
            elif newer.min_price is not None and newer.max_price is None:
                merged.max_price = None
            else:
                merged.normalize_price()
        return merged

    def without_item_class(self) -> "FilterSet":
        """Copy with category/subcategory/product type cleared."""
        return replace(self, category=None, subcategory=None, product_type=None)

    def normalize_price(self) -> None:
        """Swap reversed bounds so min <= max."""
        if (self.min_price is not None and self.max_price is not None
                and self.min_price > self.max_price):
            self.min_price, self.max_price = self.max_price, self.min_price

    def to_dict(self) -> dict:
        data = {name: getattr(self, name) for name in self.resolved_fields()}
        if self.competitor_brand:
            data["competitor_brand"] = True
        return data

    def describe(self) -> str:
        """
        Human-readable summary of the constraints.

        Example:
            FilterSet(color="red", max_price=100, product_type="tote").describe()
            -> "red, tote, under $100"
        """
        parts = []
        if self.color:
            parts.append(self.color)
        if self.size:
            parts.append(self.size)
        if self.material:
            parts.append(self.material)
        if self.brand:
            parts.append(self.brand.title())
        if self.product_type:
            parts.append(self.product_type)
        elif self.subcategory:
            parts.append(self.subcategory)
        elif self.category:
            parts.append(self.category)
        if self.occasion:
            parts.append(f"for {self.occasion}")
        if self.min_price is not None and self.max_price is not None:
            parts.append(f"${self.min_price:g}-${self.max_price:g}")
        elif self.max_price is not None:
            parts.append(f"under ${self.max_price:g}")
        elif self.min_price is not None:
            parts.append(f"over ${self.min_price:g}")
        return ", ".join(parts) if parts else "no constraints"

    def filter_terms(self) -> str:
        """Text terms appended to a provider query (prices are filtered locally)."""
        terms = [self.color, self.size, self.material, self.occasion]
        if self.brand and not self.competitor_brand:
            terms.append(self.brand)
        terms.append(self.product_type or self.subcategory or self.category)
        return " ".join(t for t in terms if t)


# =============================================================================
# Sessions
# =============================================================================

@dataclass
class Message:
    """A single message in a conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class SessionContext:
    """
    Conversational state for one session.

    Owned by the SessionStore; handlers read it, only the store writes it.

    Attributes:
        session_id: Client-supplied or generated identifier
        last_query: Normalized text of the last product query
        last_products: Products retained for follow-up filtering
        last_filters: Effective filters applied on the last turn
        locked_product_type: Last product type the user named
        last_recommended_ids: Products recommended on the last turn
        messages: Rolling history, oldest first
        created_at / last_touched: Epoch seconds
    """
    session_id: str
    last_query: str = ""
    last_products: list[Product] = field(default_factory=list)
    last_filters: FilterSet = field(default_factory=FilterSet)
    locked_product_type: Optional[str] = None
    last_recommended_ids: list[str] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    created_at: float = 0.0
    last_touched: float = 0.0

    def has_products(self) -> bool:
        return bool(self.last_products)

    def get_conversation_history(self, limit: Optional[int] = None) -> list[Message]:
        if limit is None:
            return list(self.messages)
        return self.messages[-limit:] if limit > 0 else []

    def find_product(self, product_id: str) -> Optional[Product]:
        for product in self.last_products:
            if product.id == product_id:
                return product
        return None

    def last_recommended_products(self) -> list[Product]:
        found = (self.find_product(pid) for pid in self.last_recommended_ids)
        return [p for p in found if p is not None]

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "last_query": self.last_query,
            "last_filters": self.last_filters.to_dict(),
            "locked_product_type": self.locked_product_type,
            "last_products": [p.id for p in self.last_products],
            "last_recommended_ids": list(self.last_recommended_ids),
            "messages": [m.to_dict() for m in self.messages],
            "message_count": len(self.messages),
            "created_at": datetime.fromtimestamp(self.created_at).isoformat(),
            "last_touched": datetime.fromtimestamp(self.last_touched).isoformat(),
        }


@dataclass
class TurnRecord:
    """Everything the session store needs to apply one processed turn."""
    user_message: str
    assistant_text: str
    normalized_query: str = ""
    filters: FilterSet = field(default_factory=FilterSet)
    products: Optional[list[Product]] = None  # None = keep the retained list
    recommended_ids: list[str] = field(default_factory=list)
    intent: Optional[IntentType] = None


@dataclass
class SessionStats:
    total: int
    active: int

    def to_dict(self) -> dict:
        return {"total": self.total, "active": self.active}


# =============================================================================
# Merge and retrieval
# =============================================================================

class CandidateSource(Enum):
    """Where candidates come from for a turn."""
    SESSION = "session"    # filter the session's retained products
    SEARCH = "search"      # remote search provider
    CATALOG = "catalog"    # local in-memory catalog


@dataclass
class MergeDecision:
    """
    Output of the constraint merger.

    Attributes:
        is_followup: Whether the turn refines the previous results
        kind: Follow-up kind, when is_followup
        filters: Effective filters to enforce
        source: Candidate source
        provider_query: Normalized query for the search provider
        reference_price: Price the user wants to undercut (cheaper requests)
        reasoning: Short explanation for logs
    """
    is_followup: bool
    filters: FilterSet
    source: CandidateSource
    provider_query: str = ""
    kind: Optional[FollowupKind] = None
    reference_price: Optional[float] = None
    reasoning: str = ""


@dataclass
class RetrievalResult:
    """
    Result of a retrieval call.

    Attributes:
        products: Ranked candidates, at most K
        pool: Every candidate that satisfied the constraints (bounded)
        considered: Candidates examined before exclusion
        excluded: Candidates dropped by hard constraints
        brand_unavailable: Competing brand the user asked for, if any
        audit_notes: Notes describing how candidates were obtained
    """
    products: list[Product]
    pool: list[Product]
    source: CandidateSource
    considered: int = 0
    excluded: int = 0
    brand_unavailable: Optional[str] = None
    audit_notes: list[str] = field(default_factory=list)
    cache_hit: bool = False


# =============================================================================
# Responses
# =============================================================================

@dataclass
class RecommendedProduct:
    id: str
    title: str
    highlight: str

    def to_dict(self) -> dict:
        return {"id": self.id, "title": self.title, "highlight": self.highlight}


@dataclass
class AssistantResponse:
    """
    Composed reply.

    Attributes:
        assistant_text: Always non-empty
        recommended_products: At most 5, all drawn from the candidates
        audit_notes: Internal notes on filtering and fallbacks
        used_fallback: True when the templated path produced the reply
    """
    assistant_text: str
    recommended_products: list[RecommendedProduct] = field(default_factory=list)
    audit_notes: list[str] = field(default_factory=list)
    used_fallback: bool = False

    @property
    def product_ids(self) -> list[str]:
        return [p.id for p in self.recommended_products]

    def audit_text(self) -> Optional[str]:
        return "; ".join(self.audit_notes) if self.audit_notes else None

    def to_dict(self) -> dict:
        data = {
            "assistant_text": self.assistant_text,
            "recommended_products": [p.to_dict() for p in self.recommended_products],
        }
        audit = self.audit_text()
        if audit:
            data["audit_notes"] = audit
        return data
