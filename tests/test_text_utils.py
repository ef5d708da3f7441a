"""Tests for text utilities."""

from escribiendo.utils.text_utils import (
    calculate_word_count,
    clean_suggestion,
    extract_plain_text,
    parse_lines,
    strip_think,
    strip_think_streaming,
)


class TestStripThink:
    """Tests for strip_think."""

    def test_removes_blocks(self):
        text = "<think>hmm</think>Hola <reasoning>x\ny</reasoning>mundo"
        assert strip_think(text) == "Hola mundo"

    def test_case_insensitive(self):
        assert strip_think("<THINK>a</THINK> ok") == "ok"

    def test_plain_text_unchanged(self):
        assert strip_think("  Buenos días  ") == "Buenos días"


class TestStripThinkStreaming:
    """Tests for strip_think_streaming across chunk boundaries."""

    def _run(self, chunks):
        buffer, in_think, output = "", False, ""
        for chunk in chunks:
            out, buffer, in_think = strip_think_streaming(chunk, buffer, in_think)
            output += out
        if not in_think:
            output += buffer
        return output

    def test_tag_split_across_chunks(self):
        """Tags split over several chunks are still removed."""
        assert self._run(["Hola <th", "ink>secret</thi", "nk> amigo"]) == "Hola  amigo"

    def test_unclosed_block_hidden(self):
        assert self._run(["Hola <think>nunca termina"]) == "Hola "

    def test_lone_angle_bracket_kept(self):
        """A '<' that cannot start a tag is not held back."""
        out, buffer, in_think = strip_think_streaming("a < b", "", False)
        assert out == "a < b"
        assert buffer == ""
        assert in_think is False


class TestCleanSuggestion:
    def test_strips_quotes(self):
        assert clean_suggestion('  "Me gusta esta música"  ') == "Me gusta esta música"

    def test_strips_guillemets(self):
        assert clean_suggestion("«Hola»") == "Hola"


class TestParseLines:
    """Tests for parse_lines."""

    def test_removes_markers_and_blanks(self):
        text = "1. Uno\n\n- Dos\n* Tres\n2) Cuatro"
        assert parse_lines(text) == ["Uno", "Dos", "Tres", "Cuatro"]

    def test_limit(self):
        assert parse_lines("a\nb\nc\nd", limit=3) == ["a", "b", "c"]


class TestExtractPlainText:
    """Tests for flattening journal documents."""

    def test_paragraphs_separated_by_space(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "heading", "content": [{"type": "text", "text": "Mi día"}]},
                {
                    "type": "paragraph",
                    "content": [
                        {"type": "text", "text": "Hoy "},
                        {"type": "text", "text": "fui al mercado."},
                    ],
                },
            ],
        }
        assert extract_plain_text(doc) == "Mi día Hoy fui al mercado."

    def test_empty_document(self):
        assert extract_plain_text({"type": "doc"}) == ""
        assert extract_plain_text(None) == ""

    def test_empty_paragraphs(self):
        doc = {"type": "doc", "content": [{"type": "paragraph"}, {"type": "paragraph"}]}
        assert extract_plain_text(doc) == ""

    def test_childless_block_adds_no_space(self):
        doc = {
            "type": "doc",
            "content": [
                {"type": "paragraph", "content": [{"type": "text", "text": "a"}]},
                {"type": "paragraph"},
                {"type": "paragraph", "content": [{"type": "text", "text": "b"}]},
            ],
        }
        assert extract_plain_text(doc) == "a b"

    def test_null_text_and_stray_children(self):
        """Text nodes with null text and non-dict children are skipped."""
        doc = {
            "type": "doc",
            "content": [
                {
                    "type": "paragraph",
                    "content": [{"type": "text", "text": None}, "basura", {"type": "text", "text": "Hola"}],
                },
            ],
        }
        assert extract_plain_text(doc) == "Hola"


class TestWordCount:
    def test_counts_words(self):
        assert calculate_word_count("Hoy  fui\nal mercado") == 4

    def test_blank(self):
        assert calculate_word_count("   ") == 0
