"""Domain models for per-user stream limits."""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from stream_limit.domain.errors import LimitTableError

_SEPARATORS = ("-", "{", "}", " ")


def normalize_user_id(user_id: object) -> str:
    """Return the user id with separators stripped, lower-cased."""
    value = str(user_id).strip()
    for separator in _SEPARATORS:
        value = value.replace(separator, "")
    return value.lower()


def is_empty_user_id(user_id: object) -> bool:
    """Return True for blank ids and the all-zero GUID."""
    normalized = normalize_user_id(user_id) if user_id is not None else ""
    return not normalized or set(normalized) == {"0"}


@dataclass(frozen=True)
class UserLimit:
    """Maximum concurrent streams for one user; 0 means unlimited."""

    user_id: str
    max_streams: int

    @property
    def is_limited(self) -> bool:
        return self.max_streams > 0


@dataclass(frozen=True)
class LimitTable:
    """Immutable mapping of normalized user id to stream limit."""

    entries: Mapping[str, int] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def from_limits(cls, limits: list[UserLimit]) -> "LimitTable":
        """Build a table from user limits, keyed by normalized id."""
        return cls(
            entries=MappingProxyType(
                {normalize_user_id(limit.user_id): limit.max_streams for limit in limits}
            )
        )

    def lookup(self, user_id: str) -> int:
        """Return the limit for a user, 0 when the user has none."""
        return self.entries.get(normalize_user_id(user_id), 0)

    def limits(self) -> list[UserLimit]:
        return [
            UserLimit(user_id=user_id, max_streams=max_streams)
            for user_id, max_streams in self.entries.items()
        ]

    def __len__(self) -> int:
        return len(self.entries)


def parse_limit_table(serialized: str) -> LimitTable:
    """Parse a JSON object of user id to integer limit.

    Entries whose value is not a non-negative integer are skipped, which
    leaves that user unlimited. A document that is not valid JSON, or not
    a JSON object, raises ``LimitTableError``.
    """
    try:
        raw = json.loads(serialized)
    except (TypeError, ValueError) as exc:
        raise LimitTableError("User stream limits are not valid JSON") from exc
    if not isinstance(raw, dict):
        raise LimitTableError(
            f"User stream limits must be a JSON object, got {type(raw).__name__}"
        )

    limits: list[UserLimit] = []
    for user_id, value in raw.items():
        max_streams = _parse_max_streams(value)
        if max_streams is None or is_empty_user_id(user_id):
            continue
        limits.append(UserLimit(user_id=user_id, max_streams=max_streams))
    return LimitTable.from_limits(limits)


def serialize_limit_table(table: LimitTable) -> str:
    """Serialize a table back to the JSON form ``parse_limit_table`` reads."""
    return json.dumps(dict(table.entries), sort_keys=True)


def _parse_max_streams(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
