"""
Inventory condition buckets and their printed labels.

Broken items have no label and are never printed.
"""

from .errors import UnsupportedConditionError

# Cache/stock key -> suffix printed after the product code
CONDITION_LABELS = {
    "new": "CN",
    "very-good": "FB",
    "good": "B",
}

CONDITION_KEYS = {label: key for key, label in CONDITION_LABELS.items()}


def condition_key(label: str) -> str:
    """Map a printed condition label (CN, FB, B) to its cache key."""
    try:
        return CONDITION_KEYS[label]
    except KeyError:
        raise UnsupportedConditionError(f"Unsupported condition for printing: {label!r}") from None
