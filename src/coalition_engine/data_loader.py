"""Party records and loading of election tables from CSV, JSON or Excel."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
import re
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from loguru import logger
import pandas as pd

from .errors import InvalidInputError


@dataclass(frozen=True)
class PartyVotes:
    """Votes received by one list."""

    id: str
    votes: float


@dataclass(frozen=True)
class Party:
    """A party with its votes, allocated seats and policy positions.

    ``seats`` is filled in by :func:`coalition_engine.dhondt.allocate_election`;
    loaders only read it when the source table already carries a seat column.
    """

    id: str
    name: str
    votes: int = 0
    seats: int = 0
    ideology: Tuple[float, ...] = ()
    excluded_partners: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ElectionResult:
    """Result of one election for a legislature of ``total_seats``."""

    total_seats: int
    parties: Tuple[Party, ...] = field(default_factory=tuple)

    @property
    def allocated_seats(self) -> int:
        return sum(party.seats for party in self.parties)

    @property
    def total_votes(self) -> int:
        return sum(party.votes for party in self.parties)

    def party(self, party_id: str) -> Party:
        for party in self.parties:
            if party.id == party_id:
                return party
        raise KeyError(party_id)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


IDEOLOGY_PREFIX = "ideology_"
LIST_SEPARATOR = ";"


def load_parties(path: Path | str) -> List[Party]:
    """Read a party table; the format follows the file extension."""

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Party table {path} not found")

    df = _read_table(path)
    df.columns = [str(column).strip().lower() for column in df.columns]
    if "id" not in df.columns:
        raise InvalidInputError(f"Party table {path} has no 'id' column")

    ideology_columns = [column for column in df.columns if column.startswith(IDEOLOGY_PREFIX)]
    parties: List[Party] = []
    for index, row in df.iterrows():
        party_id = _parse_str(row.get("id"))
        if party_id is None:
            raise InvalidInputError(f"Row {index + 1} of {path} has no party id")
        parties.append(
            Party(
                id=party_id,
                name=_parse_str(row.get("name")) or party_id,
                votes=_parse_votes(row.get("votes"), party_id),
                seats=_parse_int(row.get("seats")),
                ideology=_parse_ideology(row, ideology_columns, party_id),
                excluded_partners=_parse_list(row.get("excluded")),
            )
        )

    logger.info("Loaded {} parties from {}", len(parties), path)
    return parties


def load_election(path: Path | str, total_seats: int) -> ElectionResult:
    """Load a party table as an :class:`ElectionResult`."""

    return ElectionResult(total_seats=total_seats, parties=tuple(load_parties(path)))


def to_frame(records: Iterable[Any]) -> pd.DataFrame:
    """Tabulate engine records (any dataclass instances) for reporting."""

    return pd.DataFrame([asdict(record) for record in records])


def _read_table(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path, dtype={"id": str})
    if suffix == ".json":
        return pd.read_json(path, orient="records", dtype=False)
    if suffix in (".xlsx", ".xls"):
        return pd.read_excel(path, dtype={"id": str})
    raise InvalidInputError(f"Unsupported party table format: {path.suffix}")


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value))


def _parse_votes(value, party_id: str) -> int:
    if _is_missing(value):
        return 0
    if isinstance(value, str) and value.strip().startswith("-"):
        raise InvalidInputError(f"Negative vote count {value.strip()}", party_id)
    votes = _parse_int(value)
    if votes < 0:
        raise InvalidInputError(f"Negative vote count {votes}", party_id)
    return votes


def _parse_int(value) -> int:
    if _is_missing(value):
        return 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        digits = re.sub(r"[^0-9]", "", value)
        return int(digits) if digits else 0
    return int(value)


def _parse_float(value, party_id: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        raise InvalidInputError(f"Ideology score {value!r} is not a number", party_id) from None


def _parse_ideology(row: pd.Series, columns: Sequence[str], party_id: str) -> Tuple[float, ...]:
    if "ideology" in row.index:
        raw = row.get("ideology")
        if _is_missing(raw):
            return ()
        values = raw if isinstance(raw, (list, tuple)) else str(raw).split(LIST_SEPARATOR)
        return tuple(_parse_float(value, party_id) for value in values if str(value).strip())

    values = [row.get(column) for column in columns]
    present = [value for value in values if not _is_missing(value)]
    if not present:
        return ()
    if len(present) != len(values):
        raise InvalidInputError("Ideology vector is only partially filled in", party_id)
    return tuple(_parse_float(value, party_id) for value in values)


def _parse_list(value) -> Tuple[str, ...]:
    if _is_missing(value):
        return ()
    items = value if isinstance(value, (list, tuple)) else str(value).split(LIST_SEPARATOR)
    return tuple(text for text in (str(item).strip() for item in items) if text)


def _parse_str(value) -> str | None:
    if _is_missing(value):
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "Party",
    "PartyVotes",
    "ElectionResult",
    "load_parties",
    "load_election",
    "to_frame",
]
