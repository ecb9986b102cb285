"""
Tests for the row tokenizer.

Covers:
- Header handling (BOM, blank leading lines, empty input)
- Quoted fields, doubled quotes and embedded delimiters
- Short-row padding and surplus-field truncation
- Blank-line skipping and line accounting
"""

from recovery_ingestion.adapters.tokenizer import RowTokenizer, tokenize_line


class TestTokenizeLine:

    def test_plain_fields_are_trimmed(self):
        assert tokenize_line(" a , b ,c") == ["a", "b", "c"]

    def test_doubled_quote_is_literal(self):
        assert tokenize_line('1,"He said ""hi"""') == ["1", 'He said "hi"']

    def test_quoted_delimiter(self):
        assert tokenize_line('x,"Toys, Games",y') == ["x", "Toys, Games", "y"]

    def test_alternate_delimiter(self):
        assert tokenize_line("a|b|c", delimiter="|") == ["a", "b", "c"]

    def test_empty_fields(self):
        assert tokenize_line("a,,c,") == ["a", "", "c", ""]


class TestRowTokenizer:
    """Header-driven row dicts."""

    def test_rows_keyed_by_header(self):
        tok = RowTokenizer.from_text("TRGID,Title\nT1,Lamp\nT2,Chair\n")
        assert tok.header == ("TRGID", "Title")
        assert list(tok) == [
            {"TRGID": "T1", "Title": "Lamp"},
            {"TRGID": "T2", "Title": "Chair"},
        ]

    def test_short_row_padded(self):
        tok = RowTokenizer.from_text("A,B,C\n1\n")
        assert next(tok) == {"A": "1", "B": "", "C": ""}

    def test_surplus_fields_dropped(self):
        tok = RowTokenizer.from_text("A,B\n1,2,3,4\n")
        assert next(tok) == {"A": "1", "B": "2"}

    def test_blank_lines_skipped(self):
        tok = RowTokenizer.from_text("\n\nA,B\n1,2\n\n   \n3,4\n")
        assert tok.header == ("A", "B")
        rows = list(tok)
        assert rows == [{"A": "1", "B": "2"}, {"A": "3", "B": "4"}]
        assert tok.rows_yielded == 2
        assert tok.lines_consumed == 7

    def test_byte_order_mark_removed_from_header(self):
        tok = RowTokenizer.from_text("\ufeffTRGID,Title\nT1,Lamp\n")
        assert tok.header == ("TRGID", "Title")

    def test_empty_input(self):
        tok = RowTokenizer.from_text("")
        assert tok.header == ()
        assert list(tok) == []

    def test_header_only(self):
        tok = RowTokenizer.from_text("A,B\n")
        assert tok.header == ("A", "B")
        assert list(tok) == []

    def test_crlf_line_endings(self):
        tok = RowTokenizer.from_text("A,B\r\n1,2\r\n")
        assert list(tok) == [{"A": "1", "B": "2"}]

    def test_quoted_value_in_row(self):
        tok = RowTokenizer.from_text('TRGID,Title\nT1,"He said ""hi"""\n')
        assert next(tok)["Title"] == 'He said "hi"'

    def test_forward_only(self):
        tok = RowTokenizer.from_text("A\n1\n2\n")
        assert next(tok) == {"A": "1"}
        assert list(tok) == [{"A": "2"}]
        assert list(tok) == []
