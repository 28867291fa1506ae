"""Engine defaults."""

import os

# Legislature
DUTCH_PARLIAMENT_SEATS = 150

# Coalition analysis
DEFAULT_MAX_COALITION_SIZE = int(os.getenv("COALITION_ENGINE_MAX_SIZE", "5"))
MAX_COMBINATIONS = int(os.getenv("COALITION_ENGINE_MAX_COMBINATIONS", "250000"))
MINORITY_SHARE = 0.4  # 60 of 150 seats

# Ideology scores live in [-10, 10]
IDEOLOGY_MAX_DISTANCE = 20.0

# Logging
LOG_LEVEL = os.getenv("COALITION_ENGINE_LOG_LEVEL", "INFO")
