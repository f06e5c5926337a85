"""
Pydantic schemas for data validation and serialization.

Schemas:
    staging: Staging intake rows and operator corrections
    reconciliation: Pipeline phase results (validation, load, merge, run)
    api: API response models

Usage:
    from schemas.staging import StagingRowIn, StagingCorrection
    from schemas.reconciliation import ReconciliationResult
"""

__all__ = [
    "StagingRowIn",
    "StagingCorrection",
    "StagingRowResponse",
    "ValidationSummary",
    "LoadResult",
    "MergeResult",
    "ReconciliationResult",
    "RunResponse",
    "ErrorRecordResponse",
    "FactResponse",
    "HealthCheckResponse",
]
