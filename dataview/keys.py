"""Key ranking and active-key resolution for stacked views.

Resolution runs as an ordered list of rules. The first rule that returns a
key list wins:

1. explicit selection (``selected_keys``), kept in the order given
2. top-K by rank
3. every ranked key

Exclusion and ``allowed_keys`` restrict the ranked universe before the rules
run; explicit selection may still pick an excluded key. If the winning rule
yields nothing while keys exist, the top-ranked key is used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

OTHER_KEY = "Other"
OTHER_LABEL = "Other"


@dataclass(frozen=True)
class StackTotal:
    key: str
    label: str
    total: Optional[float]


def _declared_positions(declared: Iterable[str]) -> Dict[str, int]:
    positions: Dict[str, int] = {}
    for key in declared:
        key = str(key)
        if key not in positions:
            positions[key] = len(positions)
    return positions


def rank_keys(totals: Mapping[str, Optional[float]], declared: Sequence[str] = ()) -> List[str]:
    """Order keys by total desc, then declared position, then key string.

    A ``None`` total ranks as zero. Undeclared keys sort after declared ones.
    """
    positions = _declared_positions(declared)
    unknown = len(positions)

    def sort_key(key: str) -> Tuple[float, int, str]:
        total = totals.get(key)
        return (-(total if total is not None else 0.0), positions.get(key, unknown), key)

    return sorted(totals, key=sort_key)


@dataclass(frozen=True)
class KeyRequest:
    ranked: Tuple[str, ...]
    selected_keys: Optional[Tuple[str, ...]] = None
    excluded_keys: FrozenSet[str] = frozenset()
    allowed_keys: Optional[FrozenSet[str]] = None
    top: Optional[int] = None

    @property
    def universe(self) -> Tuple[str, ...]:
        return tuple(
            k
            for k in self.ranked
            if k not in self.excluded_keys and (self.allowed_keys is None or k in self.allowed_keys)
        )


def build_key_request(
    ranked: Sequence[str],
    *,
    selected_keys: Optional[Iterable[str]] = None,
    excluded_keys: Optional[Iterable[str]] = None,
    allowed_keys: Optional[Iterable[str]] = None,
    top: Optional[int] = None,
) -> KeyRequest:
    return KeyRequest(
        ranked=tuple(ranked),
        selected_keys=tuple(str(k) for k in selected_keys) if selected_keys else None,
        excluded_keys=frozenset(str(k) for k in (excluded_keys or ())),
        allowed_keys=frozenset(str(k) for k in allowed_keys) if allowed_keys is not None else None,
        top=top,
    )


def _explicit_selection(request: KeyRequest) -> Optional[List[str]]:
    if not request.selected_keys:
        return None
    present = set(request.ranked)
    out: List[str] = []
    for key in request.selected_keys:
        if key in present and key not in out:
            out.append(key)
    return out


def _top_ranked(request: KeyRequest) -> Optional[List[str]]:
    if request.top is None or request.top <= 0:
        return None
    return list(request.universe[: request.top])


def _all_ranked(request: KeyRequest) -> Optional[List[str]]:
    return list(request.universe)


RESOLUTION_RULES: Tuple[Callable[[KeyRequest], Optional[List[str]]], ...] = (
    _explicit_selection,
    _top_ranked,
    _all_ranked,
)


def resolve_active_keys(request: KeyRequest) -> List[str]:
    active: List[str] = []
    for rule in RESOLUTION_RULES:
        keys = rule(request)
        if keys is not None:
            active = keys
            break
    if not active and request.universe:
        active = [request.universe[0]]
    return active


def overflow_keys(request: KeyRequest, active: Sequence[str]) -> List[str]:
    """Keys folded into the ``Other`` bucket: in the universe but not active."""
    chosen = set(active)
    return [k for k in request.universe if k not in chosen]
