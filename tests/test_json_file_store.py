import json
import logging

import pytest
from filelock import FileLock

from school_intake.app.models import SchoolSubmission
from school_intake.app.storage import JsonFileStore, LogOnlyStore, StoreBusyError


def _submission(url: str = "https://acme.edu") -> SchoolSubmission:
    return SchoolSubmission(school_name="Acme U", school_url=url)


def _read(path):
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "schools.json"


def test_missing_file_is_an_empty_store(store_path):
    store = JsonFileStore(store_path)

    assert store.load().schools == []


def test_transaction_persists_appended_records(store_path):
    store = JsonFileStore(store_path)

    with store.transaction() as transaction:
        transaction.append(_submission())

    data = _read(store_path)
    assert len(data["schools"]) == 1
    assert data["schools"][0]["schoolUrl"] == "https://acme.edu"
    assert data["schools"][0]["status"] == "pending"
    assert not store.temp_path.exists()


def test_transaction_without_changes_does_not_write(store_path):
    store = JsonFileStore(store_path)

    with store.transaction():
        pass

    assert not store_path.exists()


def test_exception_inside_transaction_discards_changes(store_path):
    store = JsonFileStore(store_path)

    with pytest.raises(RuntimeError):
        with store.transaction() as transaction:
            transaction.append(_submission())
            raise RuntimeError("boom")

    assert not store_path.exists()
    with store.transaction():
        pass


def test_existing_records_are_kept_verbatim(store_path):
    legacy = {"id": "1700000000000", "schoolName": "Old", "schoolUrl": "https://old.edu", "extra": 1}
    store_path.write_text(json.dumps({"schools": [legacy]}), encoding="utf-8")
    store = JsonFileStore(store_path)

    with store.transaction() as transaction:
        transaction.append(_submission())

    data = _read(store_path)
    assert data["schools"][0] == legacy
    assert len(data["schools"]) == 2


def test_has_url_ignores_case_and_whitespace(store_path):
    store = JsonFileStore(store_path)
    with store.transaction() as transaction:
        transaction.append(_submission("https://acme.edu"))

    with store.transaction() as transaction:
        assert transaction.has_url("HTTPS://ACME.EDU")
        assert transaction.has_url(" https://Acme.edu ")
        assert not transaction.has_url("https://other.edu")


@pytest.mark.parametrize("content", ["{not json", '{"schools": "oops"}', "[1, 2]", ""])
def test_corrupt_file_recovers_as_empty_store(store_path, caplog, content):
    store_path.write_text(content, encoding="utf-8")
    store = JsonFileStore(store_path)

    with caplog.at_level(logging.ERROR):
        with store.transaction() as transaction:
            assert transaction.schools == []
            transaction.append(_submission())

    assert "Error reading" in caplog.text
    assert len(_read(store_path)["schools"]) == 1


def test_backoff_delays_double_until_capped(store_path):
    store = JsonFileStore(store_path, retries=5, factor=2, min_timeout=0.1, max_timeout=1.0)

    assert store.backoff_delays() == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.0])


def test_lock_timeout_raises_store_busy(store_path):
    waits = []
    store = JsonFileStore(store_path, retries=3, sleep=waits.append)
    holder = FileLock(str(store.lock_path))
    holder.acquire()
    try:
        with pytest.raises(StoreBusyError):
            with store.transaction() as transaction:
                transaction.append(_submission())
    finally:
        holder.release()

    assert waits == pytest.approx([0.1, 0.2, 0.4])
    assert not store_path.exists()


def test_lock_is_released_after_transaction(store_path):
    store = JsonFileStore(store_path)
    with store.transaction() as transaction:
        transaction.append(_submission())

    other = FileLock(str(store.lock_path))
    other.acquire(timeout=0)
    other.release()


def test_log_only_store_logs_and_forgets(caplog):
    store = LogOnlyStore()

    with caplog.at_level(logging.INFO, logger="school_intake.app.storage"):
        with store.transaction() as transaction:
            transaction.append(_submission())

    with store.transaction() as transaction:
        assert not transaction.has_url("https://acme.edu")

    assert "New school submission" in caplog.text
    assert '"schoolUrl": "https://acme.edu"' in caplog.text
