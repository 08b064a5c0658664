from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

"""Domain records produced by a workbook import.

One frozen dataclass per import type. Optional text fields hold the absent
sentinel ("N/A") when the workbook cell was blank; date fields hold None.
``import_date`` / ``import_set`` are stamped once per import run.
"""

__all__ = [
    "IdentityGroupRecord",
    "PersonnelRecord",
    "PackagingStatusRecord",
    "TestingStatusRecord",
    "MigrationPlanRecord",
    "ClusterRecord",
]


@dataclass(frozen=True)
class IdentityGroupRecord:
    """Membership of a system account in an identity (AD) group."""
    group_name: str
    account: str  # system account
    application_name: str
    application_suite: str
    environment: str  # OTAP tag
    critical: str
    import_date: datetime
    import_set: str


@dataclass(frozen=True)
class PersonnelRecord:
    account: str
    department: str
    department_simple: str
    job_role: str
    division: str
    leave_date: date | None
    employee_number: str
    import_date: datetime
    import_set: str


@dataclass(frozen=True)
class PackagingStatusRecord:
    application_name: str
    package_status: str
    readiness_date: date | None
    import_date: datetime
    import_set: str


@dataclass(frozen=True)
class TestingStatusRecord:
    application_name: str
    test_status: str
    test_date: date | None
    test_result: str
    comments: str
    planned_test_date: date | None
    import_date: datetime
    import_set: str

    __test__ = False  # not a pytest class


@dataclass(frozen=True)
class MigrationPlanRecord:
    application_name: str
    application_new: str  # replacement application
    suite_new: str
    will_be: str  # successor flag
    scope_division: str  # in/out-of-scope division tag
    target_platform: str
    readiness: str
    import_date: datetime
    import_set: str


@dataclass(frozen=True)
class ClusterRecord:
    """Mapping of an organizational department onto a migration cluster."""
    department: str
    department_simple: str
    domain: str
    cluster: str
    cluster_readiness: str
    import_date: datetime
    import_set: str
