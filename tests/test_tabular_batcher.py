try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from resume_achievements.core.config import BatchingSettings
from resume_achievements.core.errors import InputError
from resume_achievements.services.tabular_batcher import TabularBatcher


def _records(count: int, width: int = 40) -> list[dict[str, str]]:
    return [{"summary": f"{index:03d}" + "x" * width} for index in range(count)]


def test_parse_keeps_rows_with_some_selected_data():
    batcher = TabularBatcher()

    records = batcher.parse("name,role\nAlice,Eng\nBob,\n", ["name", "role"])

    assert [dict(record) for record in records] == [
        {"name": "Alice", "role": "Eng"},
        {"name": "Bob", "role": ""},
    ]


def test_parse_drops_rows_blank_in_every_selected_column():
    batcher = TabularBatcher()
    raw = "title,owner,notes\nShip API,,\n,,only notes\n  ,  ,\n"

    records = batcher.parse(raw, ["title", "owner"])

    assert [record["title"] for record in records] == ["Ship API"]


def test_parse_handles_quoted_fields_and_embedded_newlines():
    batcher = TabularBatcher()
    raw = 'title,description\n"Migrate, then verify","line one\nline two"\n'

    records = batcher.parse(raw, ["title", "description"])

    assert records[0]["title"] == "Migrate, then verify"
    assert records[0]["description"] == "line one\nline two"


def test_parse_first_duplicate_header_wins_and_unknown_columns_ignored():
    batcher = TabularBatcher()

    records = batcher.parse("key,key,other\nfirst,second,x\n", ["key", "missing"])

    assert [dict(record) for record in records] == [{"key": "first"}]


def test_parse_preserves_selected_column_order_and_fills_missing_cells():
    batcher = TabularBatcher()

    records = batcher.parse("\ufeffa,b,c\n1\n", ["c", "a"])

    assert list(records[0].keys()) == ["c", "a"]
    assert dict(records[0]) == {"c": "", "a": "1"}


def test_get_headers_preserves_duplicates_and_requires_header():
    batcher = TabularBatcher()

    assert batcher.get_headers(" Summary ,Status,Summary\nx,y,z\n") == [
        "Summary",
        "Status",
        "Summary",
    ]
    with pytest.raises(InputError):
        batcher.get_headers("")


def test_count_rows_ignores_blank_lines():
    batcher = TabularBatcher()

    assert batcher.count_rows("a,b\n1,2\n\n3,4\n") == 2
    assert batcher.count_rows("a,b\n") == 0


def test_estimate_tokens_uses_rendered_record_length():
    batcher = TabularBatcher(chars_to_tokens_factor=0.25)

    # "- a: bc\n" is eight characters.
    assert batcher.estimate_tokens({"a": "bc"}) == 2


def test_create_batches_covers_every_record_in_order():
    batcher = TabularBatcher(max_batch_tokens=60)
    records = _records(25)

    batches = batcher.create_batches(records)

    flattened = [record for batch in batches for record in batch]
    assert flattened == records
    assert len(batches) > 1


def test_create_batches_respects_token_ceiling():
    batcher = TabularBatcher(max_batch_tokens=60)

    batches = batcher.create_batches(_records(25))

    for batch in batches:
        assert batch.estimated_tokens <= 60 or len(batch) == 1


def test_oversized_record_gets_its_own_batch():
    batcher = TabularBatcher(max_batch_tokens=20)
    records = [{"summary": "short"}, {"summary": "y" * 400}, {"summary": "tiny"}]

    batches = batcher.create_batches(records)

    assert [len(batch) for batch in batches] == [1, 1, 1]
    assert batches[1].estimated_tokens > 20


def test_record_cap_closes_batches():
    batcher = TabularBatcher(max_batch_tokens=100_000, max_records_per_batch=10)

    batches = batcher.create_batches(_records(25, width=2))

    assert [len(batch) for batch in batches] == [10, 10, 5]


def test_format_for_remote_numbers_items_and_skips_blank_cells():
    batcher = TabularBatcher()
    records = batcher.parse("name,role\nAlice,Eng\nBob,\n", ["name", "role"])

    text = batcher.format_for_remote(batcher.create_batches(records)[0])

    assert text == "Item 1:\n- name: Alice\n- role: Eng\n\nItem 2:\n- name: Bob\n\n"


def test_estimate_stats_matches_batching():
    batcher = TabularBatcher(max_batch_tokens=100_000, max_records_per_batch=4)
    records = _records(10, width=2)

    stats = batcher.estimate_stats(records)

    assert stats.total_records == 10
    assert stats.batch_count == 3
    assert stats.avg_batch_size == pytest.approx(3.33)
    assert stats.to_dict()["batchCount"] == 3
    assert batcher.estimate_stats([]).batch_count == 0


def test_from_settings_blank_cap_disables_record_limit():
    settings = BatchingSettings(max_batch_tokens=100_000, max_records_per_batch="")
    batcher = TabularBatcher.from_settings(settings)

    batches = batcher.create_batches(_records(120, width=1))

    assert len(batches) == 1
