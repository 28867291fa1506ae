"""Command line interface for seat allocation and coalition analysis."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Iterable, List, Sequence

if __package__ in (None, ""):
    # Allows running this file directly by putting the package root on ``sys.path``.
    PACKAGE_ROOT = Path(__file__).resolve().parents[1]
    if str(PACKAGE_ROOT) not in sys.path:
        sys.path.insert(0, str(PACKAGE_ROOT))

from coalition_engine.coalitions import CoalitionCandidate, find_viable_coalitions, majority_threshold
from coalition_engine.compatibility import Aggregation, CompatibilityModel
from coalition_engine.data_loader import ElectionResult, load_election, to_frame
from coalition_engine.dhondt import PartySeats, TieBreak, allocate, allocate_election, quota_threshold
from coalition_engine.errors import CoalitionEngineError, InvalidInputError
from coalition_engine.log import setup_logging
from coalition_engine.scenarios import MergerEffect, merger_effect
from coalition_engine.settings import DEFAULT_MAX_COALITION_SIZE, DUTCH_PARLIAMENT_SEATS, LOG_LEVEL


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging("DEBUG" if args.verbose else args.log_level)

    try:
        return args.handler(args)
    except CoalitionEngineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coalition-engine",
        description="Allocates seats with the D'Hondt method and ranks majority coalitions.",
    )
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level (default %(default)s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Shortcut for --log-level DEBUG")
    subparsers = parser.add_subparsers(dest="command", required=True)

    allocate_parser = subparsers.add_parser("allocate", help="Distribute seats over the lists")
    _add_election_arguments(allocate_parser)
    _add_tie_break_arguments(allocate_parser)
    allocate_parser.add_argument("--output", type=Path, default=None, help="Also write the table to this CSV file")
    allocate_parser.set_defaults(handler=_run_allocate)

    coalitions_parser = subparsers.add_parser(
        "coalitions",
        help="Rank the coalitions holding a majority",
        description="Seats come from the table's seats column, or from the votes when it has none.",
    )
    _add_election_arguments(coalitions_parser)
    coalitions_parser.add_argument("--max-size", type=int, default=DEFAULT_MAX_COALITION_SIZE)
    coalitions_parser.add_argument(
        "--min-size", type=int, default=2, help="Use 1 to include single-party majorities"
    )
    coalitions_parser.add_argument(
        "--aggregation",
        choices=[rule.value for rule in Aggregation],
        default=Aggregation.MEAN.value,
        help="Combine pair scores by their mean or by the weakest pair",
    )
    coalitions_parser.add_argument(
        "--exclude-blocked", action="store_true", help="Drop coalitions where a member rules out another"
    )
    coalitions_parser.add_argument("--limit", type=int, default=10, help="Number of coalitions to print")
    coalitions_parser.set_defaults(handler=_run_coalitions)

    merge_parser = subparsers.add_parser("merge", help="Simulate several lists running jointly")
    _add_election_arguments(merge_parser)
    merge_parser.add_argument("--lists", nargs="+", required=True, help="Ids of the lists to merge")
    merge_parser.add_argument("--label", default=None, help="Name of the joint list")
    _add_tie_break_arguments(merge_parser)
    merge_parser.set_defaults(handler=_run_merge)
    return parser


def _add_election_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("table", type=Path, help="Party table (CSV, JSON or Excel)")
    parser.add_argument(
        "--seats", type=int, default=DUTCH_PARLIAMENT_SEATS, help="Seats in the legislature (default %(default)s)"
    )
    threshold = parser.add_mutually_exclusive_group()
    threshold.add_argument("--threshold", type=float, default=0.0, help="Minimum vote share, e.g. 0.05")
    threshold.add_argument(
        "--quota", action="store_true", help="Require one full quota (votes / seats), as in the Netherlands"
    )
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")


def _add_tie_break_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--tie-break",
        choices=[rule.value for rule in TieBreak],
        default=TieBreak.VOTES.value,
        help="Rule for equal quotients: more votes wins, or a seeded drawing of lots",
    )
    parser.add_argument("--seed", type=int, default=0, help="Seed for --tie-break lot (default %(default)s)")


def _threshold(args: argparse.Namespace) -> float:
    return quota_threshold(args.seats) if args.quota else args.threshold


def _run_allocate(args: argparse.Namespace) -> int:
    election = load_election(args.table, args.seats)
    results = allocate(
        election.parties,
        args.seats,
        _threshold(args),
        tie_break=TieBreak(args.tie_break),
        seed=args.seed,
    )
    if args.output is not None:
        to_frame(results).to_csv(args.output, index=False)

    if args.json:
        _print_json([result.to_dict() for result in results])
    else:
        _print_allocation(results, election, args.seats)
    return 0


def _run_coalitions(args: argparse.Namespace) -> int:
    election = _seated_election(args)
    model = CompatibilityModel(aggregation=Aggregation(args.aggregation))
    coalitions = find_viable_coalitions(
        election.parties,
        args.seats,
        args.max_size,
        model=model,
        min_size=args.min_size,
        exclude_blocked=args.exclude_blocked,
    )
    shown = coalitions[: args.limit]

    if args.json:
        _print_json([candidate.to_dict() for candidate in shown])
    else:
        _print_coalitions(shown, len(coalitions), args.seats)
    return 0


def _run_merge(args: argparse.Namespace) -> int:
    election = load_election(args.table, args.seats)
    effect = merger_effect(
        election.parties,
        args.lists,
        args.seats,
        _threshold(args),
        label=args.label,
        tie_break=TieBreak(args.tie_break),
        seed=args.seed,
    )

    if args.json:
        _print_json(effect.to_dict())
    else:
        _print_merger(effect)
    return 0


def _seated_election(args: argparse.Namespace) -> ElectionResult:
    election = load_election(args.table, args.seats)
    if election.allocated_seats == 0:
        # No seat column in the table: derive the seats from the votes.
        return allocate_election(election, _threshold(args))
    if args.quota or args.threshold > 0:
        raise InvalidInputError(
            f"{args.table} already assigns seats; --threshold and --quota only apply when seats come from votes"
        )
    return election


def _print_allocation(results: Iterable[PartySeats], election: ElectionResult, seats: int) -> None:
    names = {party.id: party.name for party in election.parties}
    print(f"=== Seat allocation ({seats} seats) ===")
    for result in results:
        label = _format_party_label(result.id, names)
        line = f"   {label}: {result.seats} seats ({result.votes:,} votes, {result.vote_share:.2%})"
        if not result.eligible:
            line += " below threshold"
        print(line)


def _print_coalitions(coalitions: List[CoalitionCandidate], found: int, seats: int) -> None:
    print(f"=== Majority coalitions ({majority_threshold(seats)} of {seats} seats) ===")
    if not coalitions:
        print("   No coalition reaches a majority")
        return
    for position, candidate in enumerate(coalitions, start=1):
        flags = []
        if candidate.is_minimal:
            flags.append("minimal")
        if candidate.is_blocked:
            flags.append("blocked: " + "; ".join(candidate.red_line_violations))
        suffix = f" [{', '.join(flags)}]" if flags else ""
        print(
            f"{position:>3}. {' + '.join(candidate.member_ids)}: {candidate.total_seats} seats "
            f"(+{candidate.surplus}), compatibility {candidate.compatibility_score:.2f}{suffix}"
        )
    if found > len(coalitions):
        print(f"   ... {found - len(coalitions)} more")


def _print_merger(effect: MergerEffect) -> None:
    sign = "+" if effect.seat_change > 0 else ""
    print(f"=== Joint list {effect.label} ===")
    print(f"   Separate lists: {effect.baseline_seats} seats")
    print(f"   Joint list: {effect.merged_seats} seats ({sign}{effect.seat_change})")
    if effect.indifference_loss > 0:
        print(f"   Indifference loss: {effect.indifference_loss:.2%} (~{effect.lost_votes:,} votes)")


def _format_party_label(party_id: str, names: dict[str, str]) -> str:
    name = names.get(party_id)
    if name and name != party_id:
        return f"{party_id} ({name})"
    return party_id


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    sys.exit(main())
