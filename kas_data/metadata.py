"""PxWeb table metadata: variables, matchers and time-axis ordering.

A PxWeb metadata payload is a list of variables (dimensions), each with
parallel ``values`` / ``valueTexts`` arrays.  Fetchers locate the
dimension they need with an ordered list of matchers; the first matcher
that matches any variable wins, so more specific matchers go first.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern, Tuple, Union

from .errors import PxError


@dataclass
class Variable:
    code: str
    text: str = ""
    values: List[str] = field(default_factory=list)
    value_texts: List[str] = field(default_factory=list)
    is_time: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Variable":
        values = raw.get("values")
        texts = raw.get("valueTexts")
        return cls(
            code=str(raw.get("code") or ""),
            text=str(raw.get("text") or ""),
            values=[str(v) for v in values] if isinstance(values, list) else [],
            value_texts=[str(t) for t in texts] if isinstance(texts, list) else [],
            is_time=raw.get("time") is True,
        )


@dataclass
class TableMeta:
    variables: List[Variable] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> "TableMeta":
        if isinstance(payload, TableMeta):
            return payload
        if not isinstance(payload, dict):
            return cls()
        raw_vars = payload.get("variables")
        variables = [
            Variable.from_dict(v) for v in raw_vars if isinstance(v, dict)
        ] if isinstance(raw_vars, list) else []
        return cls(variables=variables, raw=payload)

    def get(self, code: str) -> Optional[Variable]:
        return next((v for v in self.variables if v.code == code), None)


# ---------------------------------------------------------------------------
# Matchers
# ---------------------------------------------------------------------------


def _norm(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


@dataclass(frozen=True)
class ByCode:
    """Exact (case-insensitive) match on the variable code."""

    code: str

    def matches(self, variable: Variable) -> bool:
        target = _norm(self.code)
        return bool(target) and _norm(variable.code) == target


@dataclass(frozen=True)
class ByText:
    """Case-insensitive match on the variable text or code."""

    text: str

    def matches(self, variable: Variable) -> bool:
        target = _norm(self.text)
        if not target:
            return False
        return _norm(variable.text) == target or _norm(variable.code) == target


@dataclass(frozen=True)
class ByRegex:
    pattern: Pattern[str]

    def matches(self, variable: Variable) -> bool:
        return bool(self.pattern.search(variable.text) or self.pattern.search(variable.code))


@dataclass(frozen=True)
class ByPredicate:
    """Arbitrary test called as ``predicate(text, code, variable)``."""

    predicate: Callable[[str, str, Variable], bool]

    def matches(self, variable: Variable) -> bool:
        return bool(self.predicate(variable.text, variable.code, variable))


Matcher = Union[ByCode, ByText, ByRegex, ByPredicate]
MatcherLike = Union[Matcher, str, Pattern[str], Callable[[str, str, Variable], bool]]


def as_matcher(candidate: MatcherLike) -> Matcher:
    """Wrap a bare string, compiled pattern or callable in its matcher type."""
    if isinstance(candidate, (ByCode, ByText, ByRegex, ByPredicate)):
        return candidate
    if isinstance(candidate, str):
        return ByText(candidate)
    if isinstance(candidate, re.Pattern):
        return ByRegex(candidate)
    if callable(candidate):
        return ByPredicate(candidate)
    raise TypeError(f"Unsupported variable matcher: {candidate!r}")


def _flatten(matchers: Iterable[Any]) -> List[Matcher]:
    ordered: List[Matcher] = []
    for matcher in matchers:
        if matcher is None:
            continue
        if isinstance(matcher, (list, tuple)):
            ordered.extend(_flatten(matcher))
        else:
            ordered.append(as_matcher(matcher))
    return ordered


def find_variable(meta: TableMeta, *matchers: MatcherLike) -> Optional[Variable]:
    """Return the first variable hit by the first matcher that hits anything."""
    for matcher in _flatten(matchers):
        for variable in meta.variables:
            if matcher.matches(variable):
                return variable
    return None


def find_variable_code(meta: TableMeta, *matchers: MatcherLike) -> Optional[str]:
    """Code of the first variable matched, trying matchers in order.

    Parameters
    ----------
    meta : TableMeta
    *matchers : MatcherLike
        Matchers, plain strings (text match), compiled patterns or
        predicates; nested lists are flattened and ``None`` is ignored.

    Returns
    -------
    str or None
        ``None`` when nothing matches.
    """
    variable = find_variable(meta, *matchers)
    return variable.code if variable is not None and variable.code else None


def require_variable(meta: TableMeta, code: str, dataset_id: Optional[str] = None) -> Variable:
    variable = meta.get(code)
    if variable is None:
        context = f"{dataset_id}: " if dataset_id else ""
        raise PxError(f'{context}expected dimension "{code}" in metadata')
    return variable


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


def build_value_pairs(variable: Variable) -> List[Tuple[str, str]]:
    """Pair each value code with its label, falling back to the code."""
    values = variable.values
    texts = variable.value_texts
    if not texts or len(texts) != len(values):
        texts = list(values)
    return [(code, text if text else code) for code, text in zip(values, texts)]


def value_map(meta: TableMeta, code: str) -> List[Tuple[str, str]]:
    variable = meta.get(code)
    return build_value_pairs(variable) if variable is not None else []


def extract_time_codes(variable: Variable) -> List[str]:
    """Value codes in ascending period order.

    PxWeb lists some time dimensions newest first; variables flagged as
    time are reversed.
    """
    codes = list(variable.values)
    if variable.is_time:
        codes.reverse()
    return codes


def find_time_dimension(meta: TableMeta, fallback: str = "Viti/muaji") -> str:
    return (
        find_variable_code(
            meta,
            "Viti/muaji",
            "Viti",
            lambda text, code, variable: variable.is_time,
        )
        or fallback
    )


# ---------------------------------------------------------------------------
# Cube metadata
# ---------------------------------------------------------------------------


@dataclass
class CubeSummary:
    updated_at: Optional[str] = None
    unit: Optional[str] = None
    title: Optional[str] = None


def read_cube_metadata(cube: Any) -> CubeSummary:
    metadata = cube.get("metadata") if isinstance(cube, dict) else None
    if not isinstance(metadata, dict):
        return CubeSummary()
    updated = metadata.get("updated")
    unit = metadata.get("unit")
    title = metadata.get("title")
    return CubeSummary(
        updated_at=updated if isinstance(updated, str) else None,
        unit=str(unit) if isinstance(unit, (str, int, float)) and not isinstance(unit, bool) else None,
        title=title if isinstance(title, str) else None,
    )
