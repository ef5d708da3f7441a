"""Tests for EPUB storage and metadata extraction."""

import pytest

from escribiendo.core.book_storage import (
    BookUploadError,
    _html_to_text,
    read_epub_metadata,
    remove_epub,
    save_epub,
    uploads_dir,
    validate_epub_filename,
)


class TestSaveEpub:
    """Tests for storing uploads."""

    def test_rejects_other_extensions(self):
        with pytest.raises(BookUploadError, match="File must be an EPUB file"):
            validate_epub_filename("libro.pdf")
        with pytest.raises(BookUploadError):
            validate_epub_filename(None)

    def test_accepts_uppercase_extension(self):
        validate_epub_filename("LIBRO.EPUB")

    def test_saves_under_uuid_name(self, workspace):
        stored = save_epub("mi libro.epub", b"PK\x03\x04data")
        assert stored.path.parent == uploads_dir()
        assert stored.path.suffix == ".epub"
        assert stored.path.name != "mi libro.epub"
        assert stored.size == 8
        assert stored.path.read_bytes() == b"PK\x03\x04data"

    def test_rejects_empty(self, workspace):
        with pytest.raises(BookUploadError):
            save_epub("vacio.epub", b"")

    def test_remove(self, workspace):
        stored = save_epub("a.epub", b"x")
        assert remove_epub(stored.path) is True
        assert not stored.path.exists()
        assert remove_epub(stored.path) is False


class TestReadMetadata:
    """Tests for read_epub_metadata."""

    def test_reads_opf_fields(self, sample_epub):
        metadata = read_epub_metadata(sample_epub)

        assert metadata.title == "Cuentos de prueba"
        assert metadata.author == "Autora de Prueba"
        assert metadata.language == "es"
        assert metadata.publisher == "Editorial Ejemplo"
        assert metadata.isbn == "9788437604947"
        assert "cuentos" in metadata.description
        assert "<b>" not in metadata.description
        assert metadata.toc == ["El viaje", "La playa"]
        assert metadata.chapter_count >= 2

    def test_unreadable_file(self, tmp_path):
        path = tmp_path / "roto.epub"
        path.write_bytes(b"not a zip")
        assert read_epub_metadata(path) is None


class TestHtmlToText:
    def test_strips_markup_and_scripts(self):
        html = "<html><head><title>x</title></head><body><script>x()</script><p>Hola</p><p>mundo</p></body></html>"
        assert _html_to_text(html) == "Hola\nmundo"

    def test_bytes_input(self):
        assert _html_to_text("<p>España</p>".encode("utf-8")) == "España"
