"""Environment-driven defaults for SciBLIND studies."""

from __future__ import annotations

import os

LOG_LEVEL = os.environ.get("SCIBLIND_LOG_LEVEL", "INFO")

# Rating
DEFAULT_INITIAL_ELO = float(os.environ.get("SCIBLIND_INITIAL_ELO", "1500"))
DEFAULT_K_FACTOR = float(os.environ.get("SCIBLIND_K_FACTOR", "32"))

# Session targets
DEFAULT_EXPECTED_REVIEWERS = int(os.environ.get("SCIBLIND_EXPECTED_REVIEWERS", "5"))

# Publishability
DEFAULT_MIN_EXPOSURES_PER_ITEM = int(os.environ.get("SCIBLIND_MIN_EXPOSURES_PER_ITEM", "5"))

# Circular triad detection is O(n^3); above this many items it is skipped.
TRANSITIVITY_MAX_ITEMS = int(os.environ.get("SCIBLIND_TRANSITIVITY_MAX_ITEMS", "100"))

# Fraud detection window for vote response times.
DEFAULT_MIN_RESPONSE_TIME_MS = int(os.environ.get("SCIBLIND_MIN_RESPONSE_TIME_MS", "500"))
DEFAULT_MAX_RESPONSE_TIME_MS = int(os.environ.get("SCIBLIND_MAX_RESPONSE_TIME_MS", "300000"))
