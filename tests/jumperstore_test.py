from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from unittest.mock import MagicMock
from unittest.mock import patch

import pytest

from dir_jumper.jumpermodel import VisitRecord
from dir_jumper.jumperstore import STORE_HEADER
from dir_jumper.jumperstore import CorruptStoreError
from dir_jumper.jumperstore import JumperStore

NOW_TS = 1700000000

RECORDS = {
    "/home/u/projects/foo": VisitRecord("/home/u/projects/foo", 30.0, NOW_TS),
    "/home/u/projects/bar": VisitRecord("/home/u/projects/bar", 12.25, NOW_TS - 60),
    "/srv/www/site": VisitRecord("/srv/www/site", 0.1 + 0.2, NOW_TS - 3600),
}


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "store.txt"


@pytest.fixture
def store(store_path: Path) -> JumperStore:
    return JumperStore(str(store_path), lock_timeout=0.5)


def test_store_built_from_config() -> None:
    config = MagicMock(
        data_path="/tmp/store.txt",
        lock_timeout_seconds=1.5,
        increment=3.0,
        weight_ceiling=50.0,
        decay_factor=0.25,
    )
    store = JumperStore.from_config(config)

    assert store.data_path == "/tmp/store.txt"
    assert store._lock_timeout == 1.5
    assert store._index_options == {
        "increment": 3.0,
        "weight_ceiling": 50.0,
        "decay_factor": 0.25,
    }


def test_load_missing_file_is_empty(store: JumperStore) -> None:
    assert store.load() == {}


def test_save_then_load_round_trips(store: JumperStore) -> None:
    store.save(RECORDS)

    assert store.load() == RECORDS


def test_save_load_save_keeps_content(store: JumperStore, store_path: Path) -> None:
    store.save(RECORDS)
    first = store_path.read_text()

    store.save(store.load())

    assert store_path.read_text() == first


def test_save_writes_header_and_heaviest_first(
    store: JumperStore,
    store_path: Path,
) -> None:
    store.save(RECORDS)

    lines = store_path.read_text().splitlines()

    assert lines[0] == STORE_HEADER
    assert lines[1].startswith("/home/u/projects/foo\t")
    assert lines[-1].startswith("/srv/www/site\t")
    assert len(lines) == 4


def test_save_leaves_no_temporary_files(store: JumperStore, store_path: Path) -> None:
    store.save(RECORDS)
    store.save({})

    assert os.listdir(store_path.parent) == [store_path.name]


def test_save_failure_keeps_old_store(store: JumperStore, store_path: Path) -> None:
    store.save(RECORDS)

    with patch("dir_jumper.jumperstore.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.save({})

    assert store.load() == RECORDS
    assert os.listdir(store_path.parent) == [store_path.name]


def test_load_skips_comments_and_blank_lines(
    store: JumperStore,
    store_path: Path,
) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_text(
        "# a comment\n\n/srv/www/site\t4.0\t100\n   \n# another\n/opt\t1.0\t50\n"
    )

    assert store.load() == {
        "/srv/www/site": VisitRecord("/srv/www/site", 4.0, 100),
        "/opt": VisitRecord("/opt", 1.0, 50),
    }


def test_load_merges_duplicate_paths(store: JumperStore, store_path: Path) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_text("/opt\t1.0\t500\n/opt\t9.0\t100\n")

    assert store.load() == {"/opt": VisitRecord("/opt", 9.0, 500)}


def test_load_raises_on_corrupt_file(store: JumperStore, store_path: Path) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_text("/opt\t1.0\t500\nthis is not a record\n")

    with pytest.raises(CorruptStoreError, match=":2:"):
        store.load()


def test_load_or_empty_recovers_from_corrupt_file(
    store: JumperStore,
    store_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_bytes(b"\x00\x01garbage")

    assert store.load_or_empty() == {}
    assert "Ignoring corrupt store" in caplog.text


def test_record_visit_creates_store(store: JumperStore, store_path: Path) -> None:
    record = store.record_visit("/home/u/projects/foo", now=NOW_TS)

    assert record == VisitRecord("/home/u/projects/foo", 10.0, NOW_TS)
    assert store_path.exists()
    assert store.load() == {"/home/u/projects/foo": record}


def test_record_visit_increments(store: JumperStore) -> None:
    store.record_visit("/home/u/projects/foo", now=NOW_TS)
    record = store.record_visit("/home/u/projects/foo", now=NOW_TS + 5)

    assert record == VisitRecord("/home/u/projects/foo", 20.0, NOW_TS + 5)


def test_record_visit_decays_over_ceiling(store_path: Path) -> None:
    store = JumperStore(
        str(store_path),
        increment=10,
        weight_ceiling=25,
        decay_factor=0.5,
    )
    store.record_visit("/a", now=NOW_TS)
    store.record_visit("/b", now=NOW_TS)
    record = store.record_visit("/a", now=NOW_TS)

    assert record is not None
    assert record.weight == 10.0
    assert store.load()["/b"].weight == 5.0


def test_record_visit_replaces_corrupt_store(
    store: JumperStore,
    store_path: Path,
) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_text("not\ta\trecord\n")

    store.record_visit("/home/u/projects/foo", now=NOW_TS)

    assert list(store.load()) == ["/home/u/projects/foo"]


@pytest.mark.parametrize("path", ["", "/tmp/tab\there", "/tmp/new\nline"])
def test_record_visit_skips_unstorable_path(
    store: JumperStore,
    store_path: Path,
    path: str,
) -> None:
    assert store.record_visit(path) is None
    assert not store_path.exists()


def test_adjust_saves_weight(store: JumperStore) -> None:
    store.record_visit("/home/u/projects/foo", now=NOW_TS)

    record = store.adjust("/home/u/projects/foo", -4)

    assert record is not None
    assert store.load()["/home/u/projects/foo"].weight == 6.0


def test_modify_does_not_save_on_error(store: JumperStore, store_path: Path) -> None:
    with pytest.raises(RuntimeError):
        with store.modify() as records:
            records["/opt"] = VisitRecord("/opt", 1.0, NOW_TS)
            raise RuntimeError("boom")

    assert not store_path.exists()


def test_purge_missing_removes_deleted_directories(
    store: JumperStore,
    tmp_path: Path,
) -> None:
    kept = tmp_path / "kept"
    kept.mkdir()
    gone = tmp_path / "gone"
    store.record_visit(str(kept), now=NOW_TS)
    store.record_visit(str(gone), now=NOW_TS)

    removed = store.purge_missing()

    assert removed == 1
    assert list(store.load()) == [str(kept)]


@pytest.mark.skipif(sys.platform == "win32", reason="flock is not available")
def test_lock_times_out_while_held(store: JumperStore) -> None:
    with store._locked():
        other = JumperStore(store.data_path, lock_timeout=0.05)
        with pytest.raises(TimeoutError):
            with other._locked():
                pass


@pytest.mark.skipif(sys.platform == "win32", reason="flock is not available")
def test_concurrent_visits_to_different_paths_are_kept(store_path: Path) -> None:
    paths = [f"/home/u/concurrent/{number:02d}" for number in range(8)]
    errors: list[BaseException] = []

    def _record(path: str) -> None:
        try:
            for _ in range(5):
                JumperStore(str(store_path), lock_timeout=10).record_visit(path)
        except BaseException as error:
            errors.append(error)

    threads = [threading.Thread(target=_record, args=(path,)) for path in paths]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    records = JumperStore(str(store_path)).load()

    assert not errors
    assert sorted(records) == paths
    assert all(record.weight == 50.0 for record in records.values())


def test_load_raises_on_binary_garbage_line(
    store: JumperStore,
    store_path: Path,
) -> None:
    store_path.parent.mkdir(parents=True)
    store_path.write_bytes(b"/opt\t1.0\t500\n\xff\xfe\xfa\n")

    with pytest.raises(CorruptStoreError):
        store.load()


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX byte paths")
def test_record_visit_keeps_non_utf8_path(store: JumperStore, store_path: Path) -> None:
    path = os.fsdecode(b"/home/u/caf\xe9")

    store.record_visit(path, now=NOW_TS)
    store.record_visit("/home/u/ok", now=NOW_TS)

    records = store.load()

    assert sorted(records) == [path, "/home/u/ok"]
    assert records[path].weight == 10.0
    assert b"/home/u/caf\xe9\t" in store_path.read_bytes()
