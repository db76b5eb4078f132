"""kas_data package initializer.

This package contains the PxWeb ingestion pipeline used to download
ASKdata statistical tables and flatten them into per-period JSON
datasets.  Modules include the HTTP transport, metadata and dimension
resolution, cube decoding, record assembly and the per-table fetchers.
See individual module docstrings for details.
"""

from .errors import MetaValidationError, PxError, PxSkip, PxTransportError, Skipped
from .pipeline import PipelineSpec, run_px_dataset_pipeline

__all__ = [
    "MetaValidationError",
    "PipelineSpec",
    "PxError",
    "PxSkip",
    "PxTransportError",
    "Skipped",
    "run_px_dataset_pipeline",
]
