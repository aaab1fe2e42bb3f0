"""
Tests for mandi_intel.ingestion.record_csv — price-table parsing.

Covers:
  - parse_record_lines(): canonical header, Agmarknet aliases, positional
    fallback, quoted commas, blank lines, empty numeric fields
  - row skipping: field-count mismatch, non-numeric values, bad / empty
    dates, an unterminated quote not swallowing the next line
  - accepted date formats
  - parse_record_csv(): BOM handling, missing file
  - load_market_records(): unreadable files skipped, DataLoadError when
    nothing usable loads
  - discover_record_files()
"""

from __future__ import annotations

import logging
from datetime import date

import pytest

from mandi_intel.exceptions import DataLoadError
from mandi_intel.ingestion.record_csv import (
    CANONICAL_COLUMNS,
    discover_record_files,
    load_market_records,
    parse_record_csv,
    parse_record_lines,
)

HEADER = ",".join(CANONICAL_COLUMNS)
ROW = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,12.5,900,1100,1000,2024-01-15"


def _parse(*rows: str, header: str = HEADER):
    return parse_record_lines([header, *rows])


# ── Happy path ─────────────────────────────────────────────────────────────────

class TestParseRecordLinesValid:
    def test_parses_all_fields(self):
        records, report = _parse(ROW)
        assert len(records) == 1
        rec = records[0]
        assert rec.state == "Uttar Pradesh"
        assert rec.district == "Bulandshahar"
        assert rec.market == "Siyana"
        assert rec.variety == "Potato"
        assert rec.group == "Vegetables"
        assert rec.arrivals_tonnes == pytest.approx(12.5)
        assert rec.min_price == 900.0
        assert rec.max_price == 1100.0
        assert rec.modal_price == 1000.0
        assert rec.reported_date == date(2024, 1, 15)
        assert report.rows_read == 1
        assert report.rows_parsed == 1
        assert report.rows_skipped == 0

    def test_quoted_field_keeps_embedded_comma(self):
        row = 'Uttar Pradesh,Bulandshahar,"Siyana (Sub Yard), Old",Potato,Vegetables,1,900,1100,1000,2024-01-15'
        records, _ = _parse(row)
        assert records[0].market == "Siyana (Sub Yard), Old"

    def test_fields_are_trimmed(self):
        row = " Uttar Pradesh , Bulandshahar ,Siyana , Potato,Vegetables,1,900,1100,1000,2024-01-15"
        records, _ = _parse(row)
        assert records[0].state == "Uttar Pradesh"
        assert records[0].district == "Bulandshahar"
        assert records[0].variety == "Potato"

    def test_blank_lines_are_ignored(self):
        records, report = parse_record_lines(["", HEADER, "", ROW, "   ", ROW])
        assert len(records) == 2
        assert report.rows_read == 2

    def test_empty_numeric_fields_read_as_zero(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,,,,1000,2024-01-15"
        records, _ = _parse(row)
        assert records[0].arrivals_tonnes == 0.0
        assert records[0].min_price == 0.0
        assert records[0].max_price == 0.0

    def test_zero_modal_price_is_parsed_but_not_indexable(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,0,2024-01-15"
        records, _ = _parse(row)
        assert len(records) == 1
        assert records[0].is_indexable is False

    def test_source_order_is_preserved(self):
        rows = [ROW.replace("Siyana", f"M{i}") for i in range(5)]
        records, _ = _parse(*rows)
        assert [r.market for r in records] == [f"M{i}" for i in range(5)]

    def test_agmarknet_header_aliases(self):
        header = (
            "State Name,District Name,Market Name,Variety,Group,Arrivals (Tonnes),"
            "Min Price (Rs./Quintal),Max Price (Rs./Quintal),Modal Price (Rs./Quintal),"
            "Reported Date"
        )
        records, _ = _parse(ROW, header=header)
        assert records[0].modal_price == 1000.0
        assert records[0].reported_date == date(2024, 1, 15)

    def test_header_columns_may_be_reordered(self):
        header = "modalPrice,state,district,market,variety,group,arrivals,minPrice,maxPrice,reportedDate"
        row = "1000,Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,2024-01-15"
        records, _ = _parse(row, header=header)
        assert records[0].modal_price == 1000.0
        assert records[0].state == "Uttar Pradesh"

    def test_unrecognised_ten_column_header_is_read_positionally(self):
        header = "a,b,c,d,e,f,g,h,i,j"
        records, _ = _parse(ROW, header=header)
        assert len(records) == 1
        assert records[0].market == "Siyana"

    def test_header_missing_columns_ignores_file(self):
        records, report = _parse("Uttar Pradesh,Potato,1000", header="state,variety,modalPrice")
        assert records == []
        assert report.rows_read == 0

    def test_empty_input_returns_nothing(self):
        records, report = parse_record_lines([])
        assert records == []
        assert report.rows_read == 0


# ── Date formats ───────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "raw",
    ["2024-01-15", "15-01-2024", "15/01/2024", "15-Jan-2024", "15 Jan 2024"],
)
def test_accepted_date_formats(raw):
    row = f"Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,1000,{raw}"
    records, _ = _parse(row)
    assert records[0].reported_date == date(2024, 1, 15)


# ── Row skipping ───────────────────────────────────────────────────────────────

class TestParseRecordLinesSkips:
    def test_field_count_mismatch_is_skipped(self, caplog):
        with caplog.at_level(logging.WARNING):
            records, report = _parse("Uttar Pradesh,Bulandshahar,Siyana", ROW)
        assert len(records) == 1
        assert report.rows_skipped == 1
        assert "expected 10 fields" in caplog.text

    def test_non_numeric_price_is_skipped(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,abc,2024-01-15"
        records, report = _parse(row)
        assert records == []
        assert report.rows_skipped == 1

    def test_thousands_separator_is_not_a_number(self):
        row = 'Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,"1,234",2024-01-15'
        records, report = _parse(row)
        assert records == []
        assert report.rows_skipped == 1

    def test_unknown_date_format_is_skipped(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,1000,Jan 2024"
        records, report = _parse(row)
        assert records == []
        assert report.rows_skipped == 1

    def test_empty_date_is_skipped(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,1000,"
        records, report = _parse(row)
        assert records == []
        assert report.rows_skipped == 1

    def test_non_finite_number_is_skipped(self):
        row = "Uttar Pradesh,Bulandshahar,Siyana,Potato,Vegetables,1,900,1100,nan,2024-01-15"
        records, report = _parse(row)
        assert records == []
        assert report.rows_skipped == 1

    def test_unterminated_quote_does_not_swallow_next_line(self):
        broken = 'Uttar Pradesh,Bulandshahar,"Siyana,Potato,Vegetables,1,900,1100,1000,2024-01-15'
        records, report = _parse(broken, ROW)
        assert len(records) == 1
        assert records[0].market == "Siyana"
        assert report.rows_skipped == 1


# ── File-level API ─────────────────────────────────────────────────────────────

class TestParseRecordCsv:
    def test_reads_file_with_bom(self, tmp_path):
        path = tmp_path / "potato.csv"
        path.write_text("\ufeff" + HEADER + "\n" + ROW + "\n", encoding="utf-8")
        records, report = parse_record_csv(path)
        assert len(records) == 1
        assert report.source == "potato.csv"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_record_csv(tmp_path / "nope.csv")


class TestLoadMarketRecords:
    def test_concatenates_files_in_order(self, write_price_table):
        a = write_price_table("a.csv", [ROW])
        b = write_price_table("b.csv", [ROW.replace("Potato", "Onion")])
        records = load_market_records([a, b])
        assert [r.variety for r in records] == ["Potato", "Onion"]

    def test_missing_file_is_skipped(self, write_price_table, tmp_path):
        good = write_price_table("good.csv", [ROW])
        records = load_market_records([tmp_path / "missing.csv", good])
        assert len(records) == 1

    def test_no_usable_rows_raises_data_load_error(self, write_price_table):
        bad = write_price_table("bad.csv", ["not,enough,fields", ROW.replace("1000,2024", "0,2024")])
        with pytest.raises(DataLoadError) as exc_info:
            load_market_records([bad])
        assert exc_info.value.sources == [bad]
        assert exc_info.value.rows_skipped == 1

    def test_no_sources_raises_data_load_error(self):
        with pytest.raises(DataLoadError, match="no source files"):
            load_market_records([])


class TestDiscoverRecordFiles:
    def test_returns_sorted_matches(self, tmp_path):
        for name in ("wheat.csv", "potato.csv", "notes.txt"):
            (tmp_path / name).write_text("x", encoding="utf-8")
        found = discover_record_files(tmp_path, "*.csv")
        assert [p.name for p in found] == ["potato.csv", "wheat.csv"]

    def test_missing_directory_returns_empty(self, tmp_path):
        assert discover_record_files(tmp_path / "absent") == []
