from __future__ import annotations

from ..models.records import (
    ClusterRecord,
    IdentityGroupRecord,
    MigrationPlanRecord,
    PackagingStatusRecord,
    PersonnelRecord,
    TestingStatusRecord,
)
from .base import FieldSpec, ImportSchema, ImportType

"""The six import schemas.

Header variants are compared after normalize_header(), so "AD_Group",
"ad-group" and "AD Group" are the same spelling; listing one form is enough.
"""

__all__ = [
    "IDENTITY_GROUP",
    "PERSONNEL",
    "PACKAGING",
    "TESTING",
    "MIGRATION",
    "CLUSTER",
    "SCHEMAS",
]

_ACCOUNT = FieldSpec("account", "system account", ("System Account", "Account"), required=True)
_APPLICATION = FieldSpec(
    "application_name",
    "application name",
    ("Application Name", "Application", "App Name", "App"),
    required=True,
)
_DEPARTMENT_SIMPLE = FieldSpec(
    "department_simple",
    "department simple",
    ("Department Simple", "Simple Department", "Dept Simple"),
)

PACKAGE_STATUSES = frozenset({
    "Not Started",
    "In Progress",
    "In Review",
    "Blocked",
    "Awaiting Approval",
    "Pending Dependencies",
    "Package Failed",
    "Ready for Packaging",
    "Ready for Testing",
    "Ready for Production",
})
TEST_STATUSES = frozenset({"Not Started", "In Progress", "Completed", "Failed", "Blocked"})
TEST_RESULTS = frozenset({
    "Pass",
    "Pass with Notes",
    "Conditional Pass",
    "Fail",
    "Pending",
    "Not Tested",
    "Blocked",
})

IDENTITY_GROUP = ImportSchema(
    import_type=ImportType.IDENTITY_GROUP,
    title="Identity-Group Membership",
    import_set_prefix="IdentityGroup",
    record_type=IdentityGroupRecord,
    fields=(
        FieldSpec("group_name", "group name", ("AD Group", "Group", "Group Name"), required=True),
        _ACCOUNT,
        FieldSpec(
            "application_name",
            "application name",
            ("Application Name", "Application", "App Name", "App"),
        ),
        FieldSpec("application_suite", "application suite", ("Application Suite", "Suite")),
        FieldSpec(
            "environment",
            "environment",
            ("OTAP", "Environment", "Env"),
            vocabulary=frozenset({"O", "T", "A", "P"}),
        ),
        FieldSpec(
            "critical",
            "critical flag",
            ("Critical", "Is Critical"),
            vocabulary=frozenset({"YES", "NO", "Y", "N", "TRUE", "FALSE"}),
        ),
    ),
    primary_field="group_name",
    key_fields=("group_name", "account"),
    key_fold=False,
    table_name="identity_group_records",
    unique_columns=("group_name", "account"),
)

PERSONNEL = ImportSchema(
    import_type=ImportType.PERSONNEL,
    title="Personnel",
    import_set_prefix="Personnel",
    record_type=PersonnelRecord,
    fields=(
        _ACCOUNT,
        FieldSpec("department", "department", ("Department", "Dept")),
        _DEPARTMENT_SIMPLE,
        FieldSpec("job_role", "job role", ("Job Role", "Role")),
        FieldSpec("division", "division", ("Division", "Div")),
        FieldSpec("leave_date", "leave date", ("Leave Date",), is_date=True),
        FieldSpec(
            "employee_number",
            "employee number",
            ("Employee Number", "Employee No", "EmpNo", "Employee ID"),
        ),
    ),
    primary_field="account",
    key_fields=("account",),
    key_fold=False,
    table_name="personnel_records",
    unique_columns=("account",),
)

PACKAGING = ImportSchema(
    import_type=ImportType.PACKAGING,
    title="Packaging Status",
    import_set_prefix="Package",
    record_type=PackagingStatusRecord,
    fields=(
        _APPLICATION,
        FieldSpec(
            "package_status",
            "package status",
            ("Package Status", "Packaging Status", "Status"),
            vocabulary=PACKAGE_STATUSES,
        ),
        FieldSpec(
            "readiness_date",
            "package readiness date",
            ("Package Readiness Date", "Readiness Date", "Package Readiness"),
            is_date=True,
        ),
    ),
    primary_field="application_name",
    key_fields=("application_name",),
    key_fold=True,
    table_name="package_status_records",
    unique_columns=("application_name",),
)

# Testing keys compare the raw application name while packaging/migration fold it.
TESTING = ImportSchema(
    import_type=ImportType.TESTING,
    title="Testing Status",
    import_set_prefix="Test",
    record_type=TestingStatusRecord,
    fields=(
        _APPLICATION,
        FieldSpec("test_status", "test status", ("Test Status", "Testing Status", "Status"), vocabulary=TEST_STATUSES),
        FieldSpec("test_date", "test date", ("Test Date", "Testing Date", "Test Readiness Date"), is_date=True),
        FieldSpec("test_result", "test result", ("Test Result", "Result"), vocabulary=TEST_RESULTS),
        FieldSpec("comments", "test comments", ("Test Comments", "Comments", "Comment")),
        FieldSpec(
            "planned_test_date",
            "planned test date",
            ("Planned Test Date", "Testing Plan Date", "Test Plan Date"),
            is_date=True,
        ),
    ),
    primary_field="application_name",
    key_fields=("application_name",),
    key_fold=False,
    table_name="test_records",
    unique_columns=("application_name",),
)

MIGRATION = ImportSchema(
    import_type=ImportType.MIGRATION,
    title="Migration Plan",
    import_set_prefix="Migration",
    record_type=MigrationPlanRecord,
    fields=(
        _APPLICATION,
        FieldSpec(
            "application_new",
            "application new",
            ("Application New", "New Application", "Replacement Application"),
        ),
        FieldSpec("suite_new", "application suite new", ("Application Suite New", "Suite New", "New Suite")),
        FieldSpec("will_be", "will be", ("Will Be",)),
        FieldSpec(
            "scope_division",
            "in scope/out scope division",
            ("In Scope/Out Scope Division", "In/Out Scope Division", "Scope Division"),
        ),
        FieldSpec("target_platform", "migration platform", ("Migration Platform", "Target Platform", "Platform")),
        FieldSpec(
            "readiness",
            "migration application readiness",
            ("Migration Application Readiness", "Application Readiness", "Readiness"),
        ),
    ),
    primary_field="application_name",
    key_fields=("application_name",),
    key_fold=True,
    table_name="migration_records",
    unique_columns=("application_name",),
)

CLUSTER = ImportSchema(
    import_type=ImportType.CLUSTER,
    title="Organizational Cluster",
    import_set_prefix="Cluster",
    record_type=ClusterRecord,
    fields=(
        FieldSpec("department", "department", ("Department", "Dept"), required=True),
        _DEPARTMENT_SIMPLE,
        FieldSpec("domain", "domain", ("Domain",)),
        FieldSpec("cluster", "migration cluster", ("Migration Cluster", "Cluster", "Cluster ID")),
        FieldSpec(
            "cluster_readiness",
            "migration cluster readiness",
            ("Migration Cluster Readiness", "Cluster Readiness"),
        ),
    ),
    primary_field="department",
    key_fields=(),
    key_fold=False,
    table_name="cluster_records",
    unique_columns=("department",),
)

SCHEMAS: dict[ImportType, ImportSchema] = {
    s.import_type: s for s in (IDENTITY_GROUP, PERSONNEL, PACKAGING, TESTING, MIGRATION, CLUSTER)
}
