"""D'Hondt seat allocation and coalition analysis for proportional legislatures."""

from loguru import logger

from .coalitions import (
    CoalitionAnalysis,
    CoalitionCandidate,
    analyze_coalitions,
    compatible_additions,
    evaluate_coalition,
    find_viable_coalitions,
    majority_threshold,
)
from .compatibility import (
    Aggregation,
    CompatibilityModel,
    coalition_compatibility,
    pair_compatibility,
    partnership_table,
    red_line_violations,
)
from .data_loader import ElectionResult, Party, PartyVotes, load_election, load_parties
from .dhondt import (
    PartySeats,
    TieBreak,
    allocate,
    allocate_election,
    dhondt_allocation,
    quota_threshold,
    validate_results,
)
from .errors import AnalysisCancelled, CoalitionEngineError, ComputationLimitExceeded, InvalidInputError
from .scenarios import DUTCH_2023_SCENARIOS, MergerEffect, evaluate_scenarios, merge_lists, merger_effect

# Library code stays quiet until the host calls ``setup_logging``.
logger.disable("coalition_engine")

__all__ = [
    "Party",
    "PartyVotes",
    "PartySeats",
    "ElectionResult",
    "CoalitionCandidate",
    "CoalitionAnalysis",
    "Aggregation",
    "CompatibilityModel",
    "TieBreak",
    "MergerEffect",
    "load_parties",
    "load_election",
    "allocate",
    "allocate_election",
    "dhondt_allocation",
    "quota_threshold",
    "validate_results",
    "find_viable_coalitions",
    "analyze_coalitions",
    "evaluate_coalition",
    "compatible_additions",
    "majority_threshold",
    "pair_compatibility",
    "coalition_compatibility",
    "partnership_table",
    "red_line_violations",
    "merge_lists",
    "merger_effect",
    "evaluate_scenarios",
    "DUTCH_2023_SCENARIOS",
    "CoalitionEngineError",
    "InvalidInputError",
    "ComputationLimitExceeded",
    "AnalysisCancelled",
]
