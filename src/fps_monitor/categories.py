"""Coarse sensor categories derived from data source names."""

from enum import Enum


class Category(str, Enum):
    """Sensor category tag. Values are the JSON/route names."""

    FPS = "fps"
    GPU = "gpu"
    CPU = "cpu"
    MEMORY = "memory"
    OTHER = "other"


# Evaluated in order; the first rule with a matching keyword wins
_RULES: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.FPS, ("fps", "framerate", "frametime")),
    (Category.GPU, ("gpu",)),
    (Category.CPU, ("cpu",)),
    (Category.MEMORY, ("memory", "ram")),
)


def classify(name: str) -> Category:
    """Return the category for a data source name.

    Case-insensitive substring match with priority fps > gpu > cpu > memory.
    Names matching none of the rules are ``Category.OTHER``.
    """
    lowered = name.lower()
    for category, keywords in _RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return Category.OTHER
