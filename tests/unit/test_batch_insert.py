from __future__ import annotations

import pytest

from migration_intake.db.batch_insert import BatchInsertError, InsertResult, batch_insert, quote_ident


class DummyCursor:
    def __init__(self) -> None:
        self.queries: list[str] = []
        self.rows: list = []


# execute_values is monkeypatched inside the module so no database is needed

@pytest.fixture(autouse=True)
def patch_execute_values(monkeypatch):
    import migration_intake.db.batch_insert as bi

    def fake_execute_values(cursor, sql, rows, page_size=1000, fetch=False):
        cursor.queries.append(sql)
        cursor.rows.extend(rows)
        if fetch:
            # pretend every odd row conflicted
            return [(1,) for i, _ in enumerate(rows) if i % 2 == 0]
        return None

    monkeypatch.setattr(bi, "execute_values", fake_execute_values)
    return fake_execute_values


def test_batch_insert_basic():
    cur = DummyCursor()
    res = batch_insert(cur, table="personnel_records", columns=["account", "department"], rows=[["a", "x"], ["b", "y"]])
    assert isinstance(res, InsertResult)
    assert res.inserted_rows == 2
    assert res.skipped_rows == 0
    assert cur.queries == ['INSERT INTO "personnel_records" ("account","department") VALUES %s']


def test_batch_insert_on_conflict_counts_skipped():
    cur = DummyCursor()
    res = batch_insert(
        cur, table="t", columns=["account"], rows=[["a"], ["b"], ["c"]], conflict_columns=["account"]
    )
    assert cur.queries[0].endswith('ON CONFLICT ("account") DO NOTHING RETURNING 1')
    assert (res.inserted_rows, res.skipped_rows) == (2, 1)


def test_batch_insert_empty_rows():
    cur = DummyCursor()
    res = batch_insert(cur, table="t", columns=["c"], rows=[])
    assert res.inserted_rows == 0
    assert cur.queries == []


def test_batch_insert_wraps_driver_errors(monkeypatch):
    import migration_intake.db.batch_insert as bi

    def boom(*args, **kwargs):
        raise RuntimeError("duplicate key value violates unique constraint")

    monkeypatch.setattr(bi, "execute_values", boom)
    with pytest.raises(BatchInsertError, match="duplicate key"):
        batch_insert(DummyCursor(), table="t", columns=["c"], rows=[[1]])


def test_batch_insert_with_metrics_callback():
    cur = DummyCursor()
    captured = []
    batch_insert(cur, table="t", columns=["id", "name"], rows=[[1, "Alice"], [2, "Bob"]], metrics_callback=captured.append)
    assert len(captured) == 1
    metrics = captured[0]
    assert metrics.batch_size == 2
    assert metrics.elapsed_seconds >= 0
    assert metrics.end_time >= metrics.start_time


def test_metrics_callback_runs_on_failure(monkeypatch):
    import migration_intake.db.batch_insert as bi

    monkeypatch.setattr(bi, "execute_values", lambda *a, **k: (_ for _ in ()).throw(RuntimeError("x")))
    captured = []
    with pytest.raises(BatchInsertError):
        batch_insert(DummyCursor(), table="t", columns=["c"], rows=[[1]], metrics_callback=captured.append)
    assert len(captured) == 1


def test_batch_insert_empty_rows_skips_metrics():
    captured = []
    batch_insert(DummyCursor(), table="t", columns=["id"], rows=[], metrics_callback=captured.append)
    assert captured == []


def test_quote_ident_escapes_quotes():
    assert quote_ident('we"ird') == '"we""ird"'
