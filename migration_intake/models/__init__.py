"""Domain models for the migration workbook intake tool.

Import records (one frozen dataclass per import type), the review-log entry
and the persistence result.
"""

from .issue_record import ISSUE_OUTCOMES, IssueRecord
from .processing_result import BatchStatsAccumulator, PersistResult
from .records import (
    ClusterRecord,
    IdentityGroupRecord,
    MigrationPlanRecord,
    PackagingStatusRecord,
    PersonnelRecord,
    TestingStatusRecord,
)

__all__ = [
    # Import records
    "IdentityGroupRecord",
    "PersonnelRecord",
    "PackagingStatusRecord",
    "TestingStatusRecord",
    "MigrationPlanRecord",
    "ClusterRecord",
    # Review log / persistence
    "IssueRecord",
    "ISSUE_OUTCOMES",
    "PersistResult",
    "BatchStatsAccumulator",
]
