"""Shared fixtures.

Every test runs in its own temporary working directory so that the
relative config, database and uploads paths never touch the project tree.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from escribiendo.config.app_config import clear_config_cache
from escribiendo.config.models import clear_models_cache
from escribiendo.db.conjugation_repository import seed_verb_rules
from escribiendo.db.database import init_db, reset_db_path
from escribiendo.llm.client import LLMClient
from escribiendo.prompts.registry import clear_cache as clear_prompt_cache


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Isolated cwd with fresh config, model and DB state."""
    monkeypatch.chdir(tmp_path)
    clear_config_cache()
    clear_models_cache()
    clear_prompt_cache()
    reset_db_path()
    yield tmp_path
    reset_db_path()
    clear_config_cache()
    clear_models_cache()


@pytest.fixture
def db(workspace):
    """Initialized empty database."""
    return init_db(workspace / "db" / "test.db")


@pytest.fixture
def seeded_db(db):
    """Database with the verb rule catalog."""
    seed_verb_rules()
    return db


@pytest.fixture
def mock_llm():
    """LLMClient double; configure return values per test."""
    return MagicMock(spec=LLMClient)


@pytest.fixture
def fake_llm(mock_llm, monkeypatch):
    """Route every LLMClient.for_model call to mock_llm."""
    monkeypatch.setattr(LLMClient, "for_model", classmethod(lambda cls, model: mock_llm))
    return mock_llm


@pytest.fixture
def client(workspace, fake_llm):
    """Test client with startup (schema + rule seeding) run."""
    from escribiendo.web.api import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


def write_epub(path, title, language, chapters, author=None, extra_metadata=()):
    """Write a small EPUB with one XHTML file per (title, body) chapter."""
    from ebooklib import epub

    book = epub.EpubBook()
    book.set_identifier("urn:isbn:978-84-376-0494-7")
    book.set_title(title)
    if language:
        book.set_language(language)
    if author:
        book.add_author(author)
    for name, value in extra_metadata:
        book.add_metadata("DC", name, value)

    items = []
    for index, (heading, body) in enumerate(chapters, start=1):
        item = epub.EpubHtml(title=heading, file_name=f"ch{index}.xhtml", lang=language or "en")
        item.content = f"<h1>{heading}</h1><p>{body}</p>"
        book.add_item(item)
        items.append(item)

    book.toc = [epub.Link(i.file_name, i.title, f"ch{n}") for n, i in enumerate(items, start=1)]
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = ["nav", *items]

    epub.write_epub(str(path), book)
    return path


@pytest.fixture
def sample_epub(tmp_path):
    """Small Spanish EPUB written with ebooklib."""
    return write_epub(
        tmp_path / "cuentos.epub",
        "Cuentos de prueba",
        "es",
        [
            ("El viaje", "Había una vez un tren que cruzaba la montaña."),
            ("La playa", "El mar estaba tranquilo aquella mañana."),
        ],
        author="Autora de Prueba",
        extra_metadata=[
            ("publisher", "Editorial Ejemplo"),
            ("description", "<p>Una colección de <b>cuentos</b>.</p>"),
        ],
    )


@pytest.fixture
def english_epub(tmp_path):
    """EPUB that declares English in its package metadata."""
    return write_epub(
        tmp_path / "stories.epub",
        "Short Stories",
        "en",
        [("The Trip", "Once upon a time a train crossed the mountain and reached the sea.")],
        author="Test Author",
    )
