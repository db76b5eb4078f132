"""Decode PxWeb cube responses into a point-lookup table.

PxWeb answers a data query in one of two shapes:

* **sparse** rows, ``{"columns": [...], "data": [{"key": [...], "values": [...]}]}``;
* a **dense** json-stat style cube, ``{"id": [...], "dimension": {...}, "value": [...]}``
  where ``value`` is a flat row-major array (last dimension varies fastest).

Both are turned into a :class:`LookupTable` keyed by the tuple of value
codes in ``dim_codes`` order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .numbers import Number, coerce_number

logger = logging.getLogger(__name__)

Key = Tuple[str, ...]


@dataclass
class LookupTable:
    dim_codes: List[str]
    lookup: Dict[Key, Optional[Number]] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.lookup)

    def value(self, assignments: Mapping[str, Any]) -> Optional[Number]:
        return lookup_table_value(self.dim_codes, self.lookup, assignments)


def lookup_table_value(
    dim_codes: Sequence[str],
    lookup: Mapping[Key, Optional[Number]],
    assignments: Mapping[str, Any],
) -> Optional[Number]:
    """Point lookup; an unassigned dimension or absent key yields ``None``."""
    key = []
    for dim in dim_codes:
        val = assignments.get(dim)
        if val is None:
            return None
        key.append(str(val))
    return lookup.get(tuple(key))


def table_lookup(cube: Any, dim_order: Optional[Sequence[str]] = None) -> Optional[LookupTable]:
    """Decode either response shape; ``None`` when the shape is not recognized."""
    if not isinstance(cube, dict):
        return None
    rows = cube.get("data")
    if isinstance(rows, list) and rows:
        columns = cube.get("columns")
        if isinstance(columns, list):
            dim_codes = [
                str(col.get("code") or "")
                for col in columns
                if isinstance(col, dict) and col.get("type") != "c"
            ]
        elif dim_order:
            dim_codes = [str(code) for code in dim_order]
        else:
            return None
        lookup: Dict[Key, Optional[Number]] = {}
        for row in rows:
            if not isinstance(row, dict):
                continue
            key_vals = row.get("key")
            key = tuple(str(v) for v in key_vals) if isinstance(key_vals, list) else ()
            if len(key) != len(dim_codes):
                continue
            if isinstance(row.get("values"), list):
                vals = row["values"] or [None]
                value = vals[0]
            else:
                value = row.get("value")
            lookup[key] = coerce_number(value)
        return LookupTable(dim_codes=dim_codes, lookup=lookup)
    return table_lookup_from_value_cube(cube, dim_order)


def _ordinal_index(dimension: Any) -> Dict[int, str]:
    category = dimension.get("category") if isinstance(dimension, dict) else None
    index = category.get("index") if isinstance(category, dict) else None
    if isinstance(index, list):
        return {pos: str(code) for pos, code in enumerate(index)}
    if isinstance(index, dict):
        return {int(ordinal): str(code) for code, ordinal in index.items()}
    return {}


def table_lookup_from_value_cube(
    cube: Dict[str, Any], dim_order: Optional[Sequence[str]] = None
) -> Optional[LookupTable]:
    """Decode a dense cube with stride arithmetic.

    The flat ``value`` array follows the cube's own ``id`` order, so that
    order is preferred; ``dim_order`` is used only when ``id`` is absent.
    """
    values = cube.get("value")
    dimensions = cube.get("dimension")
    if not isinstance(values, list) or not isinstance(dimensions, dict):
        return None
    ids = cube.get("id")
    if isinstance(ids, list) and ids:
        order = [str(code) for code in ids]
    elif dim_order:
        order = [str(code) for code in dim_order]
    else:
        return None

    ord_maps: List[Dict[int, str]] = []
    for code in order:
        ord_map = _ordinal_index(dimensions.get(code))
        if not ord_map:
            return None
        ord_maps.append(ord_map)

    sizes = [len(m) for m in ord_maps]
    strides = [1] * len(sizes)
    for i in range(len(sizes) - 2, -1, -1):
        strides[i] = strides[i + 1] * sizes[i + 1]

    lookup: Dict[Key, Optional[Number]] = {}
    dropped = 0
    for idx, raw in enumerate(values):
        key = []
        for ord_map, stride, size in zip(ord_maps, strides, sizes):
            code = ord_map.get((idx // stride) % size)
            if code is None:
                break
            key.append(code)
        else:
            lookup[tuple(key)] = coerce_number(raw)
            continue
        dropped += 1
    if dropped:
        logger.warning("Dropped %s cube cells with unmapped ordinals", dropped)
    return LookupTable(dim_codes=order, lookup=lookup)
