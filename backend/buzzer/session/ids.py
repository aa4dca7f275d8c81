"""Random numeric identifiers for sessions and participants."""

import random

# Session codes and participant ids share this range and one namespace.
ID_MIN = 100000
ID_MAX = 999999


class IdentifierGenerator:
    """Draw pseudo-random integers uniformly from a half-open range.

    Performs no uniqueness check: callers test the result against the
    relevant namespace and decide whether to retry or fail.
    """

    def __init__(self, seed: int | str | None = None) -> None:
        self._random = random.Random(seed)  # noqa: S311

    def generate(self, minimum: int = ID_MIN, maximum: int = ID_MAX) -> int:
        if minimum >= maximum:
            raise ValueError(f"empty identifier range [{minimum}, {maximum})")
        return self._random.randrange(minimum, maximum)
