import pytest

from app.utils.db_client import RollbackOnlyError

INSERT = "INSERT INTO messages VALUES (:id, :message, CURRENT_TIMESTAMP)"


def test_transaction_commits_on_clean_exit(db, row_count):
    with db.transaction() as connection:
        assert db.in_transaction
        connection.exec_driver_sql("INSERT INTO messages VALUES ('1', 'a', CURRENT_TIMESTAMP)")

    assert not db.in_transaction
    assert row_count("1") == 1


def test_transaction_rolls_back_on_error(db, row_count):
    with pytest.raises(RuntimeError):
        with db.transaction():
            db.execute_write(INSERT, {"id": "2", "message": "b"})
            raise RuntimeError("boom")

    assert row_count("2") == 0


def test_nested_scope_joins_ambient_transaction(db, row_count):
    with db.transaction() as outer:
        with db.transaction() as inner:
            assert inner is outer
            db.execute_write(INSERT, {"id": "3", "message": "c"})
        # Visible inside the shared transaction
        assert db.execute_scalar("SELECT COUNT(*) FROM messages WHERE id = '3'") == 1

    assert row_count("3") == 1


def test_nested_failure_marks_outer_rollback_only(db, row_count):
    with pytest.raises(RollbackOnlyError):
        with db.transaction():
            db.execute_write(INSERT, {"id": "4", "message": "d"})
            try:
                with db.transaction():
                    raise ValueError("inner failure")
            except ValueError:
                pass

    assert row_count("4") == 0


def test_ping(db):
    assert db.ping() is True
