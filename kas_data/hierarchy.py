"""Derive a parent/child hierarchy from numbered dimension labels.

CPI groups are labelled ``"01 Food"``, ``"01.1 Food"``, ``"01.1.1 Bread"``;
the numbering encodes the tree.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

_NUMBERED = re.compile(r"^([0-9]+(?:\.[0-9]+)*)\s*(.*)$")


def parse_numbered_label(label: str) -> Tuple[Optional[str], str]:
    trimmed = label.strip()
    match = _NUMBERED.match(trimmed)
    if not match:
        return None, trimmed
    short = re.sub(r"^[.\-\s]+", "", match.group(2)).strip()
    return match.group(1), short or trimmed


def _parent_numbering(numbering: str) -> Optional[str]:
    parts = [p for p in numbering.split(".") if p]
    if len(parts) <= 1:
        return None
    return ".".join(parts[:-1])


def build_numbered_hierarchy(options: Sequence[Mapping[str, str]]) -> List[Dict[str, Any]]:
    """Return one node per option with ``parent``, ``children`` and ``level``."""
    nodes: Dict[str, Dict[str, Any]] = {}
    numbering_to_key: Dict[str, str] = {}
    numbering_of: Dict[str, Optional[str]] = {}
    for option in options:
        numbering, short_label = parse_numbered_label(option["label"])
        key = option["key"]
        if numbering:
            numbering_to_key[numbering] = key
        numbering_of[key] = numbering
        nodes[key] = {
            "key": key,
            "label": option["label"],
            "short_label": short_label,
            "parent": None,
            "children": [],
            "level": 0,
        }

    for key, node in nodes.items():
        numbering = numbering_of[key]
        parent_number = _parent_numbering(numbering) if numbering else None
        parent_key = numbering_to_key.get(parent_number) if parent_number else None
        if parent_key is None or parent_key == key:
            continue
        node["parent"] = parent_key
        nodes[parent_key]["children"].append(key)

    for node in nodes.values():
        level = 0
        seen = {node["key"]}
        parent = node["parent"]
        while parent is not None and parent not in seen:
            seen.add(parent)
            level += 1
            parent = nodes[parent]["parent"]
        node["level"] = level
    return list(nodes.values())


_CODE_PREFIX = re.compile(r"^([A-Z]*\d+[A-Z0-9]*)", re.IGNORECASE)


def build_code_prefix_hierarchy(options: Sequence[Mapping[str, str]]) -> List[Dict[str, Any]]:
    """Hierarchy for labels led by codes such as ``D1`` / ``D11``.

    The parent of a code is the longest other code that prefixes it.
    """
    code_by_key: Dict[str, str] = {}
    key_by_code: Dict[str, str] = {}
    for option in options:
        match = _CODE_PREFIX.match(option["label"]) or _CODE_PREFIX.match(option["key"])
        if match:
            code = match.group(1).upper()
            code_by_key[option["key"]] = code
            key_by_code[code] = option["key"]

    parent_by_key: Dict[str, Optional[str]] = {}
    for option in options:
        code = code_by_key.get(option["key"])
        parent_code = None
        if code is not None:
            for candidate in key_by_code:
                if candidate != code and code.startswith(candidate):
                    if parent_code is None or len(candidate) > len(parent_code):
                        parent_code = candidate
        parent_by_key[option["key"]] = key_by_code[parent_code] if parent_code else None

    children: Dict[str, List[str]] = {}
    for key, parent in parent_by_key.items():
        if parent is not None and key not in children.setdefault(parent, []):
            children[parent].append(key)

    def level(key: str) -> int:
        depth, seen = 0, {key}
        parent = parent_by_key.get(key)
        while parent is not None and parent not in seen:
            seen.add(parent)
            depth += 1
            parent = parent_by_key.get(parent)
        return depth

    nodes = []
    for option in options:
        short = re.sub(r"^[A-Z]*\d+[A-Z0-9]*\s*", "", option["label"], flags=re.IGNORECASE).strip()
        nodes.append(
            {
                "key": option["key"],
                "label": short or option["label"],
                "parent": parent_by_key[option["key"]],
                "children": list(children.get(option["key"], [])),
                "level": level(option["key"]),
            }
        )
    return nodes
