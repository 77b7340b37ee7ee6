# test_sync_service.py
#
# Imports
import sqlite3
from unittest.mock import patch
#
# Third-Party Imports
import pytest
from loguru import logger
#
# Local Imports
from pkm_Server_API.app.core.Checklists import Checklists_Library
from pkm_Server_API.app.core.DB_Management.PKM_DB import PKMDatabase
from pkm_Server_API.app.core.Graphs import Graphs_Library
from pkm_Server_API.app.core.Images import Images_Library
from pkm_Server_API.app.core.Notes import Notes_Library
from pkm_Server_API.app.core.Sync.clock import EPOCH_ISO, MAX_TIMESTAMP_MS, SyncClock, iso_to_ms
from pkm_Server_API.app.core.Sync.exceptions import InvalidCutoffError, SyncStorageError
from pkm_Server_API.app.core.Sync.sync_service import parse_since, cutoff_to_iso, get_changes_since
#
########################################################################################################################
#
# Tests:


@pytest.mark.parametrize("raw, expected", [
    (None, None),
    ("", None),
    ("   ", None),
    ("0", 0),
    ("1712345678901", 1712345678901),
    (" 15 ", 15),
    (str(MAX_TIMESTAMP_MS), MAX_TIMESTAMP_MS),
])
def test_parse_since_accepts(raw, expected):
    assert parse_since(raw) == expected


@pytest.mark.parametrize("raw", ["-1", "abc", "12.5", "1e3", "+5", "0x10", "12 34", str(MAX_TIMESTAMP_MS + 1)])
def test_parse_since_rejects(raw):
    with pytest.raises(InvalidCutoffError) as exc_info:
        parse_since(raw)
    assert str(exc_info.value) == "Invalid timestamp format. Use milliseconds since epoch."
    assert exc_info.value.raw_value == raw


def test_cutoff_to_iso():
    assert cutoff_to_iso(None) == EPOCH_ISO
    assert cutoff_to_iso(1712345678901) == "2024-04-05T19:34:38.901Z"
    with pytest.raises(InvalidCutoffError):
        cutoff_to_iso(-5)
    with pytest.raises(InvalidCutoffError):
        cutoff_to_iso(True)


def test_note_scenario_create_then_delete(db, user_a):
    """Empty initial sync, then a created note, then its deletion."""
    initial = get_changes_since(db, user_a["id"], None).to_dict()
    assert all(rows == [] for rows in initial["updates"].values())
    assert initial["deletions"] == []

    before_create = initial["serverTimestamp"]
    note = Notes_Library.create_note(db, user_a["id"], "hello")
    after_create = get_changes_since(db, user_a["id"], before_create).to_dict()
    assert [row["id"] for row in after_create["updates"]["notes"]] == [note["id"]]
    assert after_create["deletions"] == []

    between = after_create["serverTimestamp"]
    Notes_Library.delete_note(db, user_a["id"], note["id"])
    after_delete = get_changes_since(db, user_a["id"], between).to_dict()
    assert after_delete["updates"]["notes"] == []
    assert after_delete["deletions"] == [{"id": note["id"], "type": "notes"}]


def test_resync_with_same_cutoff_is_identical(db, user_a):
    graph = Graphs_Library.create_graph(db, user_a["id"], "G")
    Graphs_Library.create_node(db, user_a["id"], graph["id"], "n", 0, 0)
    checklist = Checklists_Library.create_checklist(db, user_a["id"], "C")
    Checklists_Library.delete_checklist(db, user_a["id"], checklist["id"])

    first = get_changes_since(db, user_a["id"], 0)
    second = get_changes_since(db, user_a["id"], 0)
    assert first.updates == second.updates
    assert first.deletions == second.deletions
    assert second.server_timestamp > first.server_timestamp


def test_cutoff_at_mutation_excludes_it_previous_server_timestamp_includes_it(db, user_a):
    previous = get_changes_since(db, user_a["id"], None).server_timestamp
    note = Notes_Library.create_note(db, user_a["id"], "M")
    mutation_ms = iso_to_ms(note["updated_at"])

    at_mutation = get_changes_since(db, user_a["id"], mutation_ms)
    assert at_mutation.updates["notes"] == []

    from_previous = get_changes_since(db, user_a["id"], previous)
    assert [row["id"] for row in from_previous.updates["notes"]] == [note["id"]]


def test_server_timestamp_follows_every_committed_stamp(db, user_a):
    note = Notes_Library.create_note(db, user_a["id"], "x")
    payload = get_changes_since(db, user_a["id"], None)
    assert payload.server_timestamp > iso_to_ms(note["updated_at"])

    updated = Notes_Library.update_note(db, user_a["id"], note["id"], {})
    assert iso_to_ms(updated["updated_at"]) > payload.server_timestamp


def test_storage_failure_becomes_sync_storage_error(db, user_a):
    with patch("pkm_Server_API.app.core.Sync.sync_service.collect_changes",
               side_effect=sqlite3.OperationalError("no such table: notes")):
        with pytest.raises(SyncStorageError):
            get_changes_since(db, user_a["id"], None)


def test_storage_failure_is_logged_with_its_traceback(db, user_a):
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="ERROR",
                            filter="pkm_Server_API.app.core.Sync.sync_service")
    try:
        # Braces in the error text must not be treated as format fields
        with patch("pkm_Server_API.app.core.Sync.sync_service.collect_changes",
                   side_effect=sqlite3.OperationalError("near \"{\": syntax error")):
            with pytest.raises(SyncStorageError):
                get_changes_since(db, user_a["id"], None)
    finally:
        logger.remove(handler_id)
    assert len(records) == 1
    assert "near \"{\": syntax error" in records[0]["message"]
    assert records[0]["exception"] is not None
    assert records[0]["exception"].type is sqlite3.OperationalError


def test_stamps_stay_ordered_across_workers_sharing_the_file(db, user_a, fake_time):
    # A second worker process: its own connection and its own in-memory clock
    other_worker = PKMDatabase(db.db_path, clock=SyncClock(time_source=fake_time))
    try:
        for n in range(5):
            Notes_Library.create_note(db, user_a["id"], f"burst {n}")
        first = get_changes_since(db, user_a["id"], None)

        late = Notes_Library.create_note(other_worker, user_a["id"], "written by the other worker")
        assert iso_to_ms(late["updated_at"]) > first.server_timestamp

        second = get_changes_since(db, user_a["id"], first.server_timestamp)
        assert [row["id"] for row in second.updates["notes"]] == [late["id"]]
    finally:
        other_worker.close_all_connections()


def test_ownership_isolation_across_users(db, user_a, user_b):
    graph = Graphs_Library.create_graph(db, user_b["id"], "B")
    Graphs_Library.create_node(db, user_b["id"], graph["id"], "n", 0, 0)
    Notes_Library.create_note(db, user_a["id"], "A's note")

    payload = get_changes_since(db, user_a["id"], None)
    assert payload.updates["graphs"] == []
    assert payload.updates["nodes"] == []
    assert [row["user_id"] for row in payload.updates["notes"]] == [user_a["id"]]


def test_incremental_sync_agrees_with_full_sync_for_referenced_images(db, user_a, user_b, tmp_path):
    image = Images_Library.save_image(db, user_b["id"], tmp_path / "uploads", "b.png", "image/png", b"\x89PNG",
                                      ["image/png"], 1024)
    first = get_changes_since(db, user_a["id"], None)
    assert first.updates["images"] == []

    note = Notes_Library.create_note(db, user_a["id"], "see picture", image_url=image["url"])
    second = get_changes_since(db, user_a["id"], first.server_timestamp)
    full = get_changes_since(db, user_a["id"], None)
    assert [row["id"] for row in second.updates["images"]] == [image["id"]]
    assert [row["id"] for row in full.updates["images"]] == [image["id"]]

    Notes_Library.delete_note(db, user_a["id"], note["id"])
    third = get_changes_since(db, user_a["id"], second.server_timestamp)
    assert third.updates["images"] == []
    assert {"id": image["id"], "type": "images"} in [t.to_dict() for t in third.deletions]
    assert get_changes_since(db, user_a["id"], None).updates["images"] == []

#
# End of test_sync_service.py
########################################################################################################################
