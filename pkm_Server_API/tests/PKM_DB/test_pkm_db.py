# test_pkm_db.py
#
# Imports
import sqlite3
import threading
#
# Third-Party Imports
import pytest
#
# Local Imports
from pkm_Server_API.app.api.v1.API_Deps.PKM_DB_Deps import get_pkm_db_for_path, close_all_pkm_db_instances
from pkm_Server_API.app.core.DB_Management.PKM_DB import (
    PKMDatabase, PKMDatabaseError, SchemaError, ConflictError, SYNCABLE_TABLES
)
from pkm_Server_API.app.core.DB_Management.Users_DB import (
    create_user, get_user_by_id, get_user_by_username, ensure_user_exists
)
from pkm_Server_API.app.core.Notes import Notes_Library
from pkm_Server_API.app.core.Sync.clock import SyncClock, iso_to_ms
from pkm_Server_API.app.core.Sync.sync_service import get_changes_since
#
########################################################################################################################
#
# Tests:


def test_schema_creates_every_table(db):
    names = {row["name"] for row in db.execute_query(
        "SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()}
    assert set(SYNCABLE_TABLES) | {"users", "db_schema_version"} <= names
    for table in SYNCABLE_TABLES:
        columns = {row["name"] for row in db.execute_query(f"PRAGMA table_info({table})").fetchall()}
        assert {"created_at", "updated_at", "deleted_at"} <= columns


def test_schema_version_recorded(db):
    version = db.execute_query("SELECT version FROM db_schema_version WHERE schema_name = 'pkm_schema'").fetchone()
    assert version["version"] == 1


def test_reopening_existing_database_keeps_data(tmp_path, clock):
    path = tmp_path / "reopen.sqlite"
    first = PKMDatabase(path, clock=clock)
    create_user(first, "carol", "hash")
    first.close_connection()

    second = PKMDatabase(path, clock=clock)
    assert get_user_by_username(second, "carol") is not None
    second.close_connection()


def test_newer_schema_version_is_refused(tmp_path, clock):
    path = tmp_path / "future.sqlite"
    PKMDatabase(path, clock=clock).close_connection()
    conn = sqlite3.connect(path)
    conn.execute("UPDATE db_schema_version SET version = 99 WHERE schema_name = 'pkm_schema'")
    conn.commit()
    conn.close()

    with pytest.raises(SchemaError):
        PKMDatabase(path, clock=clock)


def test_clock_seeded_from_stored_timestamps(tmp_path, fake_time):
    path = tmp_path / "seed.sqlite"
    early_db = PKMDatabase(path, clock=SyncClock(time_source=fake_time))
    user = create_user(early_db, "dave", "hash")
    fake_time.advance(3_600_000)
    note = Notes_Library.create_note(early_db, user["id"], "from the future")
    early_db.close_connection()

    # A fresh process whose wall clock is an hour behind the stored rows
    fake_time.advance(-3_600_000)
    fresh_clock = SyncClock(time_source=fake_time)
    reopened = PKMDatabase(path, clock=fresh_clock)
    try:
        assert fresh_clock.now_ms() > iso_to_ms(note["updated_at"])
    finally:
        reopened.close_connection()


def test_clock_seeded_from_last_sync_timestamp(tmp_path, fake_time):
    path = tmp_path / "sync-seed.sqlite"
    first_db = PKMDatabase(path, clock=SyncClock(time_source=fake_time))
    user = create_user(first_db, "erin", "hash")
    fake_time.advance(60_000)
    payload = get_changes_since(first_db, user["id"], None)
    first_db.close_all_connections()

    fake_time.advance(-60_000)
    fresh_clock = SyncClock(time_source=fake_time)
    reopened = PKMDatabase(path, clock=fresh_clock)
    try:
        assert reopened.execute_query("SELECT last_ms FROM sync_clock").fetchone()[0] == payload.server_timestamp
        assert fresh_clock.now_ms() > payload.server_timestamp
    finally:
        reopened.close_all_connections()


def test_transaction_rolls_back_on_error(db, user_a):
    with pytest.raises(RuntimeError):
        with db.transaction() as conn:
            now = db.now_iso()
            db.insert_record(conn, "notes", {"user_id": user_a["id"], "content": "lost",
                                             "created_at": now, "updated_at": now})
            raise RuntimeError("abort")
    assert Notes_Library.list_notes(db, user_a["id"]) == []


def test_nested_transaction_commits_with_outer(db, user_a):
    with db.transaction() as outer:
        with db.transaction() as inner:
            assert inner is outer
            now = db.now_iso()
            db.insert_record(inner, "notes", {"user_id": user_a["id"], "content": "kept",
                                              "created_at": now, "updated_at": now})
    assert [n["content"] for n in Notes_Library.list_notes(db, user_a["id"])] == ["kept"]


def test_execute_query_maps_errors(db):
    with pytest.raises(PKMDatabaseError):
        db.execute_query("SELECT * FROM no_such_table")
    db.execute_query("INSERT INTO users (username, password_hash, created_at, updated_at) VALUES ('x', 'h', 't', 't')")
    with pytest.raises(ConflictError):
        db.execute_query(
            "INSERT INTO users (username, password_hash, created_at, updated_at) VALUES ('x', 'h', 't', 't')")


def test_create_user_duplicate_username(db, user_a):
    with pytest.raises(ConflictError) as exc_info:
        create_user(db, "alice", "other-hash")
    assert "Username already exists." in str(exc_info.value)


def test_user_lookup_returns_bool_active_flag(db, user_a):
    user = get_user_by_id(db, user_a["id"])
    assert user["is_active"] is True
    assert user["username"] == "alice"
    assert get_user_by_id(db, 4242) is None


def test_ensure_user_exists_is_idempotent(db):
    first = ensure_user_exists(db, 50, "single_user")
    second = ensure_user_exists(db, 50, "single_user")
    assert first["id"] == second["id"] == 50
    assert first["password_hash"] == "!"


def _open_in_worker_thread(database):
    opened = []
    worker = threading.Thread(target=lambda: opened.append(database.get_connection()))
    worker.start()
    worker.join()
    return opened[0]


def test_close_all_connections_reaches_other_threads(tmp_path, clock):
    database = PKMDatabase(tmp_path / "threads.sqlite", clock=clock)
    main_conn = database.get_connection()
    worker_conn = _open_in_worker_thread(database)
    assert worker_conn is not main_conn

    assert database.close_all_connections() == 2
    for conn in (main_conn, worker_conn):
        with pytest.raises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")
    # The WAL was checkpointed and truncated on close
    wal = tmp_path / "threads.sqlite-wal"
    assert not wal.exists() or wal.stat().st_size == 0

    # Still usable afterwards
    assert database.execute_query("SELECT 1").fetchone()[0] == 1
    database.close_all_connections()


def test_shutdown_closes_worker_connections_of_cached_instances(tmp_path):
    database = get_pkm_db_for_path(tmp_path / "cached.sqlite")
    worker_conn = _open_in_worker_thread(database)
    close_all_pkm_db_instances()
    with pytest.raises(sqlite3.ProgrammingError):
        worker_conn.execute("SELECT 1")

#
# End of test_pkm_db.py
########################################################################################################################
