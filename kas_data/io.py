"""Persist datasets as JSON files.

Datasets are serialized deterministically (two-space indent, UTF-8,
non-ASCII kept) and written atomically: the JSON goes to a temporary file
in the same directory which is then renamed over the final path.  Output
files live in a git checkout but change on every run, so they are
optionally marked ``--skip-worktree`` to keep them out of routine diffs.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from .numbers import tidy_number

logger = logging.getLogger(__name__)


def json_dumps(data: Any) -> str:
    """Serialize ``data`` the way every dataset file is written.

    Parameters
    ----------
    data : Any
        JSON-compatible data.

    Returns
    -------
    str
        Two-space indented UTF-8 text with non-ASCII kept and a trailing
        newline.
    """
    return json.dumps(data, ensure_ascii=False, indent=2) + "\n"


def _atomic_write_text(text: str, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)


def mark_skip_worktree(path: Path) -> bool:
    """Best-effort ``git update-index --skip-worktree`` for ``path``.

    Returns ``True`` when git accepted the flag.  Outside a repository, or
    for untracked files, this quietly does nothing.
    """
    absolute = path.resolve()
    try:
        top = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=absolute.parent,
            capture_output=True,
            text=True,
            check=True,
        ).stdout.strip()
        if not top:
            return False
        relative = absolute.relative_to(Path(top).resolve())
        subprocess.run(
            ["git", "update-index", "--skip-worktree", str(relative)],
            cwd=top,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, ValueError, subprocess.CalledProcessError) as exc:
        logger.debug("Unable to mark %s as skip-worktree: %s", path, exc)
        return False
    logger.debug("Marked skip-worktree: %s", relative)
    return True


def write_json(
    out_dir: Union[str, Path],
    filename: str,
    data: Any,
    *,
    skip_worktree: bool = True,
) -> Path:
    """Write ``data`` to ``out_dir/filename`` and return the path."""
    path = Path(out_dir) / filename
    _atomic_write_text(json_dumps(data), path)
    if skip_worktree:
        mark_skip_worktree(path)
    logger.info("Wrote %s", path)
    return path


def _json_cell(value: Any) -> Any:
    if isinstance(value, float):
        return tidy_number(value)
    return value


def frame_records(frame: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as JSON-ready dicts.

    NaN becomes ``None``.  A merge with missing cells promotes integer
    columns to float, so integral floats are snapped back to ``int`` the
    same way :func:`~kas_data.numbers.tidy_number` treats single tables.
    """
    cleaned = frame.astype(object).where(pd.notna(frame), None)
    return [
        {column: _json_cell(value) for column, value in row.items()}
        for row in cleaned.to_dict(orient="records")
    ]
