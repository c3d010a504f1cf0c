# ---------------------------------------------------------------------------
# NOTE: This module is imported pretty much **everywhere** so we avoid any
# heavyweight dependencies or side-effects here.
# ---------------------------------------------------------------------------

from typing import Final

# Base API prefix (all HTTP routes are served under /api/*)
API_PREFIX: Final[str] = "/api"

# Router prefixes (relative to API_PREFIX)
PERMUTATIONS_PREFIX: Final[str] = "/permutations"
TASKS_PREFIX: Final[str] = "/tasks"

# Smallest total accepted at the request boundary
MIN_TOTAL: Final[int] = 1

# A patient takes either one or two pills on any given day
MIN_PILLS_PER_DAY: Final[int] = 1
MAX_PILLS_PER_DAY: Final[int] = 2

DEFAULT_STEPS: Final[tuple[int, ...]] = tuple(range(MIN_PILLS_PER_DAY, MAX_PILLS_PER_DAY + 1))


def get_full_path(relative_path: str) -> str:
    """Get the full API path for a relative path."""
    return f"{API_PREFIX}{relative_path}"
