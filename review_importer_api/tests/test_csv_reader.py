"""
CsvReader header parsing, counting and offset batching.
"""

from conftest import HEADER
from app.core.importer.csv_reader import CsvReader


def _five_rows() -> str:
    lines = [HEADER]
    for i in range(1, 6):
        lines.append(f"SKU{i},Author {i},a{i}@example.com,,,Review number {i} text,{i}")
    return "\n".join(lines) + "\n"


def test_parse_headers_trims_names(write_csv):
    path = write_csv(" SKU , Author Name ,Review Text,Review Stars\nX,Y,Z,5\n")
    assert CsvReader(path).parse_headers() == ["SKU", "Author Name", "Review Text", "Review Stars"]


def test_parse_headers_skips_bom(write_csv):
    path = write_csv(HEADER + "\nX,Y,y@example.com,,,Text text text,5\n", encoding="utf-8-sig")
    headers = CsvReader(path).parse_headers()
    assert headers[0] == "SKU"


def test_parse_headers_missing_or_empty_file(write_csv, tmp_path):
    assert CsvReader(str(tmp_path / "nope.csv")).parse_headers() is None
    assert CsvReader(write_csv("")).parse_headers() is None


def test_total_row_count_excludes_header(write_csv):
    reader = CsvReader(write_csv(_five_rows()))
    assert reader.total_row_count() == 5


def test_total_row_count_missing_file_is_zero(tmp_path):
    assert CsvReader(str(tmp_path / "nope.csv")).total_row_count() == 0


def test_get_batch_offsets(write_csv):
    """5 data rows: offsets 0, 4 and 5 with limit 2."""
    reader = CsvReader(write_csv(_five_rows()))

    assert [r.row_number for r in reader.get_batch(0, 2)] == [2, 3]
    assert [r.row_number for r in reader.get_batch(4, 2)] == [6]
    assert reader.get_batch(5, 2) == []


def test_get_batch_maps_columns(write_csv):
    path = write_csv(HEADER + '\nABC123, John Doe ,john@example.com,1.2.3.4,2024-01-15 10:30:00 UTC,"Great, really",5\n')
    row = CsvReader(path).get_batch(0, 10)[0]

    assert row.product_sku == "ABC123"
    assert row.author_name == "John Doe"
    assert row.author_email == "john@example.com"
    assert row.author_ip == "1.2.3.4"
    assert row.review_date == "2024-01-15 10:30:00 UTC"
    assert row.review_text == "Great, really"
    assert row.review_stars == "5"


def test_get_batch_missing_column_leaves_field_unset(write_csv):
    path = write_csv("SKU,Author Name,Review Text,Review Stars,Extra\nX,Jane,Some text here,4,ignored\n")
    row = CsvReader(path).get_batch(0, 10)[0]

    assert row.author_email is None
    assert row.author_ip is None
    assert row.review_stars == "4"


def test_get_batch_skips_blank_lines_but_keeps_numbering(write_csv):
    text = HEADER + "\nA,N,a@example.com,,,Text one here,5\n\nB,N,b@example.com,,,Text two here,4\n"
    rows = CsvReader(write_csv(text)).get_batch(0, 10)

    assert [r.product_sku for r in rows] == ["A", "B"]
    assert [r.row_number for r in rows] == [2, 4]


def test_get_batch_multiline_quoted_field(write_csv):
    text = HEADER + '\nA,N,a@example.com,,,"line one\nline two",5\nB,N,b@example.com,,,Other text,4\n'
    rows = CsvReader(write_csv(text)).get_batch(0, 10)

    assert rows[0].review_text == "line one\nline two"
    assert rows[1].product_sku == "B"


def test_get_batch_missing_file_returns_empty(tmp_path):
    assert CsvReader(str(tmp_path / "nope.csv")).get_batch(0, 10) == []
