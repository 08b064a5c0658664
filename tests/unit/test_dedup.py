from __future__ import annotations

from datetime import UTC, datetime

from migration_intake.models import ClusterRecord, IdentityGroupRecord, MigrationPlanRecord
from migration_intake.schemas import CLUSTER, IDENTITY_GROUP, MIGRATION
from migration_intake.services.dedup import Deduplicator

NOW = datetime(2025, 3, 1, tzinfo=UTC)


def _ig(group: str, account: str) -> IdentityGroupRecord:
    return IdentityGroupRecord(group, account, "N/A", "N/A", "N/A", "N/A", NOW, "s")


def _mig(app: str) -> MigrationPlanRecord:
    return MigrationPlanRecord(app, "N/A", "N/A", "N/A", "N/A", "N/A", "N/A", NOW, "s")


def test_first_occurrence_wins():
    d = Deduplicator(IDENTITY_GROUP)
    assert d.check(_ig("G1", "acc")) is None
    assert d.check(_ig("G1", "acc")) == "Duplicate combination of group name 'G1' and system account 'acc'"
    assert d.check(_ig("G1", "other")) is None
    assert d.check(_ig("G2", "acc")) is None
    assert len(d) == 3


def test_identity_group_key_is_case_sensitive():
    d = Deduplicator(IDENTITY_GROUP)
    assert d.check(_ig("G1", "acc")) is None
    assert d.check(_ig("g1", "ACC")) is None


def test_migration_key_folds_case_and_whitespace():
    d = Deduplicator(MIGRATION)
    assert d.check(_mig("Finance Portal")) is None
    assert d.check(_mig(" finance   PORTAL ")) == "Duplicate application name ' finance   PORTAL '"


def test_schema_without_key_never_reports_duplicates():
    d = Deduplicator(CLUSTER)
    rec = ClusterRecord("Finance", "Fin", "Corp", "C1", "Ready", NOW, "s")
    assert d.check(rec) is None
    assert d.check(rec) is None
    assert d.key_of(rec) is None
    assert len(d) == 0
