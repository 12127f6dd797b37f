"""
tests/test_csv_reader.py

Pytest unit tests for the tabular text reader.
"""

from __future__ import annotations

import pytest

from app.parsing.csv_reader import TableParseError, read_header, read_table, sniff_delimiter


class TestReadHeader:
    def test_strips_bom_and_whitespace(self) -> None:
        assert read_header("\ufeff 注文番号 ,顧客名\nA1,x\n") == ("注文番号", "顧客名")

    def test_empty_first_line(self) -> None:
        assert read_header("\nA1,x\n") == ()

    def test_quoted_header_with_delimiter(self) -> None:
        assert read_header('"a,b",c\n') == ("a,b", "c")


class TestSniffDelimiter:
    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("a,b,c", ","),
            ("a\tb\tc", "\t"),
            ("a;b;c", ";"),
            ("single", ","),
        ],
    )
    def test_picks_widest_split(self, line: str, expected: str) -> None:
        assert sniff_delimiter(line) == expected


class TestReadTable:
    def test_quoted_field_with_comma(self) -> None:
        table = read_table('注文番号,金額\nA1,"1,200円"\n')

        assert table.headers == ("注文番号", "金額")
        assert len(table.rows) == 1
        assert table.rows[0].values == {"注文番号": "A1", "金額": "1,200円"}
        assert table.rows[0].line_number == 1

    def test_quoted_field_with_line_break(self) -> None:
        table = read_table('a,notes\n1,"line one\nline two"\n2,x\n')

        assert table.rows[0].values["notes"] == "line one\nline two"
        assert [row.line_number for row in table.rows] == [1, 2]

    def test_blank_rows_are_skipped_but_keep_numbering(self) -> None:
        table = read_table("a,b\n1,2\n\n,\n3,4\n")

        assert [row.line_number for row in table.rows] == [1, 4]
        assert table.skipped_blank_rows == 2

    def test_missing_cells_read_as_empty(self) -> None:
        table = read_table("a,b,c\n1\n")
        assert table.rows[0].values == {"a": "1", "b": "", "c": ""}

    def test_surplus_cells_are_ignored(self) -> None:
        table = read_table("a,b\n1,2,3\n")
        assert table.rows[0].values == {"a": "1", "b": "2"}

    def test_duplicate_header_first_occurrence_wins(self) -> None:
        table = read_table("a,a\n1,2\n")
        assert table.rows[0].values == {"a": "1"}

    def test_tab_separated(self) -> None:
        table = read_table("a\tb\n1\t2\n")

        assert table.delimiter == "\t"
        assert table.rows[0].values == {"a": "1", "b": "2"}

    def test_crlf_line_endings(self) -> None:
        table = read_table("a,b\r\n1,2\r\n")
        assert table.rows[0].values == {"a": "1", "b": "2"}

    def test_oversized_field_raises_table_parse_error(self) -> None:
        text = 'a\n"' + ("x" * 200_000) + '"\n'
        with pytest.raises(TableParseError):
            read_table(text)
