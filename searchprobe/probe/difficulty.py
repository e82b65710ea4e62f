"""
Difficulty Tiers.
Ordered table of escalating query framings, each with deterministic
fallback queries keyed by brand category.
"""

from dataclasses import dataclass, field


MAX_ATTEMPTS = 5

GENERIC_CATEGORY = "general"

CATEGORY_ALIASES: dict[str, str] = {
    "apparel": "fashion",
    "clothing": "fashion",
    "shoes": "fashion",
    "footwear": "fashion",
    "accessories": "fashion",
    "cosmetics": "beauty",
    "skincare": "beauty",
    "makeup": "beauty",
    "tech": "electronics",
    "computers": "electronics",
    "furniture": "home",
    "home goods": "home",
    "kitchen": "home",
    "decor": "home",
    "pets": "pet",
    "pet supplies": "pet",
    "sporting goods": "sports",
    "outdoor": "sports",
    "fitness": "sports",
    "grocery": "food",
    "beverages": "food",
    "wellness": "health",
    "supplements": "health",
    "auto parts": "automotive",
    "automotive parts": "automotive",
    "automotive_parts": "automotive",
}


@dataclass(frozen=True)
class DifficultyTier:
    """One rung of the escalation ladder."""
    level: int
    name: str
    framing: str
    example: str
    fallbacks: dict[str, str] = field(default_factory=dict)

    def fallback_query(self, category: str) -> str:
        """Deterministic query for this tier and brand category."""
        return self.fallbacks.get(normalize_category(category), self.fallbacks[GENERIC_CATEGORY])


def normalize_category(category: str | None) -> str:
    """Map free-form category text onto a fallback table key."""
    key = (category or "").strip().lower()
    if not key:
        return GENERIC_CATEGORY
    key = CATEGORY_ALIASES.get(key, key)
    if key in DIFFICULTY_TIERS[0].fallbacks:
        return key
    for alias, target in CATEGORY_ALIASES.items():
        if alias in key:
            return target
    for known in DIFFICULTY_TIERS[0].fallbacks:
        if known in key:
            return known
    return GENERIC_CATEGORY


DIFFICULTY_TIERS: tuple[DifficultyTier, ...] = (
    DifficultyTier(
        level=1,
        name="single_concept",
        framing=(
            "A single product concept in plain words, the way a shopper types "
            "a category or product type. Two or three words, no qualifiers."
        ),
        example="running shoes",
        fallbacks={
            "fashion": "linen shirt",
            "beauty": "face moisturizer",
            "electronics": "wireless headphones",
            "home": "throw blanket",
            "pet": "dog bed",
            "sports": "yoga mat",
            "food": "dark chocolate",
            "health": "vitamin d",
            "automotive": "brake pads",
            GENERIC_CATEGORY: "gift card",
        },
    ),
    DifficultyTier(
        level=2,
        name="one_qualifier",
        framing=(
            "The product concept plus exactly one qualifier such as a material, "
            "color, audience, or price limit."
        ),
        example="waterproof running shoes",
        fallbacks={
            "fashion": "black linen shirt",
            "beauty": "moisturizer for dry skin",
            "electronics": "wireless headphones under $100",
            "home": "wool throw blanket",
            "pet": "orthopedic dog bed",
            "sports": "non slip yoga mat",
            "food": "sugar free dark chocolate",
            "health": "vegan vitamin d",
            "automotive": "ceramic brake pads",
            GENERIC_CATEGORY: "gifts under $50",
        },
    ),
    DifficultyTier(
        level=3,
        name="problem_framed",
        framing=(
            "Describe the shopper's problem instead of naming the product. "
            "The right product must be inferred from the need."
        ),
        example="shoes that won't hurt my knees on long runs",
        fallbacks={
            "fashion": "something to wear that doesn't wrinkle when I travel",
            "beauty": "my skin gets flaky and tight in winter",
            "electronics": "something to block out noise on my commute",
            "home": "my couch feels cold in the evenings",
            "pet": "my old dog has trouble getting comfortable at night",
            "sports": "my mat slides around during hot yoga",
            "food": "a sweet treat that won't spike my blood sugar",
            "health": "I never get enough sun in winter",
            "automotive": "my brakes squeal when I stop",
            GENERIC_CATEGORY: "I need something for someone who has everything",
        },
    ),
    DifficultyTier(
        level=4,
        name="scenario_framed",
        framing=(
            "Describe a concrete situation or occasion the shopper is preparing "
            "for, written as a conversational sentence."
        ),
        example="getting ready for my first half marathon in the rain next month",
        fallbacks={
            "fashion": "outfit for a summer wedding on the beach",
            "beauty": "skincare routine for a week of skiing",
            "electronics": "setting up a home office for video calls",
            "home": "making the guest room cozy for my parents visiting",
            "pet": "bringing home a rescue puppy this weekend",
            "sports": "starting hot yoga classes next week",
            "food": "snacks for a long road trip with kids",
            "health": "staying healthy during a winter in Seattle",
            "automotive": "getting my car ready for a mountain road trip",
            GENERIC_CATEGORY: "birthday present for my dad who loves the outdoors",
        },
    ),
    DifficultyTier(
        level=5,
        name="multi_constraint",
        framing=(
            "Combine three or more constraints (audience, material, budget, "
            "occasion, exclusions) in one natural sentence."
        ),
        example="vegan waterproof trail shoes for wide feet under $120",
        fallbacks={
            "fashion": "vegan leather boots for wide calves under $150",
            "beauty": "fragrance free moisturizer for sensitive skin with spf under $30",
            "electronics": "noise cancelling headphones for small ears with long battery under $200",
            "home": "machine washable wool blanket for a king bed in neutral colors",
            "pet": "waterproof orthopedic bed for a large senior dog that chews",
            "sports": "thick non slip yoga mat for bad knees that is eco friendly",
            "food": "nut free gluten free snacks for kids lunchboxes under $20",
            "health": "vegan vitamin d and k2 for kids that tastes good",
            "automotive": "low dust ceramic brake pads for a 2019 honda civic",
            GENERIC_CATEGORY: "eco friendly gift for a teenager under $40 that ships fast",
        },
    ),
)


def tier_for_attempt(attempt: int) -> DifficultyTier:
    """
    Get the tier for a 1-based attempt index.

    Raises:
        ValueError: If the index is outside 1..MAX_ATTEMPTS
    """
    if attempt < 1 or attempt > len(DIFFICULTY_TIERS):
        raise ValueError(f"Attempt {attempt} outside 1..{len(DIFFICULTY_TIERS)}")
    return DIFFICULTY_TIERS[attempt - 1]
