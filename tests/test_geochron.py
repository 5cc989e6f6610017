from __future__ import annotations

import json
import logging

import pytest

from molasse.geochron import (
    AgeRecord,
    IngestError,
    detect_format,
    ingest_ages,
    make_age_record,
    parse_age_delimited,
    parse_age_json,
    parse_age_text,
    records_to_frame,
    remove_record,
    summarize_ages,
)


CSV_WITH_GAP = "mineral,method,age,error\nZircon,U-Pb,500,5\n,Ar-Ar,,2\nBiotite,Ar-Ar,300,3\n"


def test_json_array_yields_record_with_fresh_id() -> None:
    result = parse_age_json('[{"mineral":"Zircon","method":"U-Pb","age":"500","error":"5"}]')

    assert len(result.records) == 1
    record = result.records[0]
    assert record.age == 500.0
    assert record.error == 5.0
    assert record.mineral == "Zircon"
    assert record.method == "U-Pb"
    assert isinstance(record.id, str) and record.id


def test_json_non_numeric_age_is_dropped_and_reported() -> None:
    result = parse_age_json('[{"mineral":"Zircon","age":"notanumber","error":5}]')

    assert result.records == ()
    assert len(result.skipped) == 1
    assert result.skipped[0].position == 0
    assert "age: not numeric" in result.skipped[0].reasons


def test_json_single_object_and_source_id_ignored() -> None:
    result = parse_age_json('{"id": "keep-me", "mineral": "Apatite", "method": "FT", "age": 6.3, "error": 0.8}')

    assert len(result.records) == 1
    assert result.records[0].id != "keep-me"
    assert result.records[0].age == pytest.approx(6.3)


def test_json_skips_non_objects_bools_and_missing_fields() -> None:
    text = json.dumps(
        [
            {"mineral": "Zircon", "age": 100, "error": 1},
            42,
            {"mineral": "Zircon", "age": True, "error": 1},
            {"mineral": "Zircon", "age": 100},
            {"mineral": "Zircon", "age": 100, "error": -1},
        ]
    )
    result = parse_age_json(text)

    assert len(result.records) == 1
    assert [row.position for row in result.skipped] == [1, 2, 3, 4]
    assert result.skipped[2].reasons == ("error: missing",)
    assert result.skipped[3].reasons == ("error: negative",)


def test_json_ids_are_unique() -> None:
    rows = [{"mineral": "Zircon", "age": 100 + idx, "error": 1} for idx in range(200)]
    result = parse_age_json(json.dumps(rows))

    assert len({record.id for record in result.records}) == 200


def test_invalid_json_raises_ingest_error() -> None:
    with pytest.raises(IngestError):
        parse_age_json('[{"mineral": "Zircon", "age": 1')


def test_json_integer_beyond_float_range_is_skipped() -> None:
    result = parse_age_json('[{"mineral": "Zircon", "age": ' + "9" * 400 + ', "error": 1}]')

    assert result.records == ()
    assert result.skipped[0].reasons == ("age: not numeric",)


def test_ingest_survives_oversized_and_deeply_nested_json() -> None:
    existing = parse_age_delimited(CSV_WITH_GAP).records

    huge = ingest_ages(existing, '[{"mineral": "Zircon", "age": ' + "9" * 5000 + ', "error": 1}]', "json")
    assert huge.records == existing

    nested = ingest_ages(existing, "[" * 100000 + "]" * 100000, "json")
    assert not nested.ok
    assert nested.records == existing
    assert nested.error.startswith("Invalid JSON")


def test_delimited_drops_row_without_age_and_keeps_order() -> None:
    result = parse_age_delimited(CSV_WITH_GAP)

    assert [(record.mineral, record.age) for record in result.records] == [("Zircon", 500.0), ("Biotite", 300.0)]
    assert len(result.skipped) == 1
    assert result.skipped[0].position == 3
    assert result.skipped[0].reasons == ("age: missing",)


def test_delimited_uncertainty_header_maps_to_error() -> None:
    result = parse_age_delimited("Mineral,Method,Age,Uncertainty\nMonazite,U-Pb,48.2,0.9\n")

    assert len(result.records) == 1
    assert result.records[0].error == pytest.approx(0.9)
    assert result.records[0].mineral == "Monazite"


def test_delimited_blank_lines_short_rows_and_extra_columns() -> None:
    text = "sample,mineral,method,age,error,notes\r\n\r\nS1,Zircon,U-Pb,520,4,good\r\n   \r\nS2,Biotite,Ar-Ar,300\r\n"
    result = parse_age_delimited(text)

    assert len(result.records) == 1
    assert result.records[0].age == 520.0
    # Blank lines are not reported; the short row is.
    assert [row.position for row in result.skipped] == [5]
    assert result.skipped[0].reasons == ("error: missing",)


def test_delimited_canonicalizes_known_methods() -> None:
    result = parse_age_delimited("mineral,method,age,error\nMuscovite,40Ar/39Ar,21.6,0.25\nZircon,LA-ICP,20,1\n")

    assert [record.method for record in result.records] == ["Ar-Ar", "LA-ICP"]


def test_delimited_empty_text_yields_nothing() -> None:
    result = parse_age_delimited("")
    assert result.records == ()
    assert result.skipped == ()


def test_ingest_invalid_json_leaves_collection_unchanged(caplog: pytest.LogCaptureFixture) -> None:
    existing = parse_age_delimited(CSV_WITH_GAP).records

    with caplog.at_level(logging.WARNING, logger="molasse.geochron"):
        outcome = ingest_ages(existing, "{not json", "json")

    assert not outcome.ok
    assert outcome.records == existing
    assert outcome.result is None
    assert "Failed to parse geochronology data" in caplog.text


def test_ingest_batches_are_additive_and_ordered() -> None:
    first = ingest_ages((), CSV_WITH_GAP, "csv")
    second = ingest_ages(first.records, '[{"mineral":"Zircon","age":612,"error":6.5}]', "json")

    assert second.ok
    assert [record.age for record in second.records] == [500.0, 300.0, 612.0]
    assert second.records[:2] == first.records


def test_ingest_keeps_exact_duplicates() -> None:
    text = "mineral,method,age,error\nZircon,U-Pb,500,5\n"
    first = ingest_ages((), text, "csv")
    second = ingest_ages(first.records, text, "csv")

    assert len(second.records) == 2
    assert second.records[0].id != second.records[1].id


def test_detect_format_and_dispatch() -> None:
    assert detect_format("ages.JSON") == "json"
    assert detect_format("ages.csv") == "csv"
    with pytest.raises(IngestError):
        detect_format("ages.xlsx")
    with pytest.raises(IngestError):
        parse_age_text("", "xml")


def test_manual_entry_requires_positive_age_and_error() -> None:
    assert make_age_record("Zircon", "U-Pb", 0, 5) is None
    assert make_age_record("Zircon", "U-Pb", 500, 0) is None
    assert make_age_record("Zircon", "U-Pb", "abc", 5) is None

    record = make_age_record("Zircon", "U-Pb", 500, 5)
    assert isinstance(record, AgeRecord)
    assert record.age == 500.0


def test_remove_record_and_summary() -> None:
    records = parse_age_json(
        json.dumps(
            [
                {"mineral": "Zircon", "method": "U-Pb", "age": 1850, "error": 12},
                {"mineral": "Biotite", "method": "K-Ar", "age": 18.9, "error": 0.4},
            ]
        )
    ).records

    summary = summarize_ages(records)
    assert summary is not None
    assert summary.count == 2
    assert summary.min_age == pytest.approx(18.9)
    assert summary.correlation == "Proterozoic Basement"

    remaining = remove_record(records, records[0].id)
    assert len(remaining) == 1
    assert summarize_ages(remaining).correlation == "Phanerozoic Orogeny"
    assert summarize_ages(()) is None


def test_records_to_frame_columns() -> None:
    records = parse_age_delimited(CSV_WITH_GAP).records
    frame = records_to_frame(records)

    assert list(frame.columns) == ["id", "mineral", "method", "age_ma", "error_ma"]
    assert frame["age_ma"].tolist() == [500.0, 300.0]
    assert records_to_frame(()).empty
