"""Error taxonomy for the PxWeb pipeline.

Two outcomes end a table run early:

* :class:`PxSkip` is an expected, data-dependent absence (a filter matched
  nothing, an axis resolved empty).  It does not inherit from
  :class:`PxError`; the pipeline converts it into a :class:`Skipped`
  sentinel so callers can tell "nothing to do" apart from a failure.
* :class:`PxError` means the live API no longer matches what a fetcher
  expects.  It is fatal to that one table and is never retried.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class PxError(Exception):
    """Structural failure: schema mismatch, bad cube or invalid record."""


class PxTransportError(PxError):
    """HTTP failure after the retry budget, carrying the last observed status."""

    def __init__(self, message: str, *, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class MetaValidationError(PxError):
    """Dataset meta envelope failed validation; nothing is written."""


class PxSkip(Exception):
    """Signal that a table has no applicable data for this run."""


@dataclass(frozen=True)
class Skipped:
    """Result returned in place of a dataset when a run was skipped."""

    dataset_id: str
    reason: str
