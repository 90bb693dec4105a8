try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from resume_achievements.core.errors import InputError, SessionMissError
from resume_achievements.models.session import FinalResult
from resume_achievements.services.datasets import DatasetService
from resume_achievements.services.session_store import (
    FallbackSessionStore,
    InMemorySessionBackend,
)
from resume_achievements.services.tabular_batcher import TabularBatcher
from resume_achievements.services.temp_files import TempFileManager


@pytest.fixture()
def service(tmp_path):
    files = TempFileManager(tmp_path)
    store = FallbackSessionStore(
        InMemorySessionBackend(3600),
        release_files=files.release_session_files,
        recovery_enabled=False,
    )
    return DatasetService(
        store=store,
        files=files,
        batcher=TabularBatcher(),
        file_size_limit_bytes=1024,
        download_cleanup_delay_seconds=0,
    )


def test_ingest_reports_headers_and_row_count(service):
    summary = service.ingest("s1", "export.csv", b"Summary,Status,Summary\nA,Done,x\nB,Open,y\n")

    assert summary.headers == ["Summary", "Status"]
    assert summary.original_headers == ["Summary", "Status", "Summary"]
    assert summary.row_count == 2
    assert summary.model_dump(by_alias=True)["rowCount"] == 2


@pytest.mark.parametrize(
    ("filename", "content", "message"),
    [
        (None, b"a\n1\n", "No file uploaded"),
        ("notes.txt", b"a\n1\n", "Only CSV files are allowed"),
        ("big.csv", b"a\n" + b"1\n" * 1024, "File exceeds"),
        ("latin.csv", "név\nérték\n".encode("latin-1"), "Invalid CSV format"),
        ("empty.csv", b"", "no header row"),
    ],
)
def test_ingest_rejects_bad_uploads(service, filename, content, message):
    with pytest.raises(InputError) as excinfo:
        service.ingest("s1", filename, content)

    assert message in excinfo.value.message


def test_reupload_replaces_dataset_and_clears_results(service, tmp_path):
    service.ingest("s1", "first.csv", b"a\n1\n")
    store = service._store
    record = store.get("s1")
    first_path = record.dataset.file_path
    record.final = FinalResult(achievements=["Old"])

    service.ingest("s1", "second.csv", b"b\n2\n")

    record = store.get("s1")
    assert record.dataset.filename == "second.csv"
    assert record.final is None
    assert not first_path.exists()


def test_export_prefers_written_file_and_names_after_upload(service):
    service.ingest("s1", "sprint-42.csv", b"a\n1\n")
    record = service._store.get("s1")
    export = service._files.write_export("s1", ["Led X", "Built Y"])
    record.final = FinalResult(achievements=["ignored"], file_path=export)

    payload = service.export("s1")

    assert payload.filename == "sprint-42-resume-achievements.txt"
    assert payload.content == "Led X\n\nBuilt Y"


def test_export_without_final_result_is_a_miss(service):
    service.ingest("s1", "a.csv", b"a\n1\n")

    with pytest.raises(SessionMissError) as excinfo:
        service.export("s1")

    assert excinfo.value.message == "No processed data available"


def test_cleanup_releases_files_and_is_idempotent(service):
    service.ingest("s1", "a.csv", b"a\n1\n")
    path = service._store.get("s1").dataset.file_path

    service.cleanup("s1")
    service.cleanup("s1")
    service.cleanup(None)

    assert not path.exists()
    assert service._store.get("s1") is None


def test_export_leaves_session_until_cleanup_is_scheduled(service):
    service.ingest("s1", "a.csv", b"a\n1\n")
    service._store.get("s1").final = FinalResult(achievements=["Led X"])

    payload = service.export("s1")

    assert payload.session_id == "s1"
    assert service._store.get("s1") is not None

    service.schedule_cleanup(payload.session_id)

    assert service._store.get("s1") is None
