"""Tests guarding the project tree against writes from the test suite.

Databases, uploaded EPUBs and config must always resolve inside the
per-test ``workspace``; the project's own ./db, ./uploads and ./data
directories must come out of a test unchanged.
"""

import hashlib
import os
from pathlib import Path

from escribiendo.config.app_config import load_app_config

PROJECT_ROOT = Path(__file__).resolve().parent.parent
GUARDED_DIRS = ("db", "uploads", "data")


def _hash_directory(path: Path) -> str | None:
    """Hash relative paths, sizes and mtimes under path; None if missing."""
    if not path.exists():
        return None

    hasher = hashlib.sha256()
    for root, dirs, files in os.walk(path):
        dirs.sort()
        for filename in sorted(files):
            filepath = Path(root) / filename
            stat = filepath.stat()
            hasher.update(str(filepath.relative_to(path)).encode())
            hasher.update(f"{stat.st_size}:{int(stat.st_mtime)}".encode())
    return hasher.hexdigest()


def _snapshot() -> dict[str, str | None]:
    return {name: _hash_directory(PROJECT_ROOT / name) for name in GUARDED_DIRS}


class TestWorkspaceIsolation:
    """The workspace fixture redirects every relative storage path."""

    def test_storage_paths_inside_workspace(self, workspace):
        storage = load_app_config().storage
        for relative in (storage.db_path, storage.uploads_dir):
            resolved = (Path.cwd() / relative).resolve()
            assert resolved.is_relative_to(workspace.resolve())

    def test_api_writes_stay_in_workspace(self, client, workspace, sample_epub):
        before = _snapshot()

        client.post("/api/chats", json={"title": "Aislado"})
        with open(sample_epub, "rb") as f:
            response = client.post(
                "/api/books",
                files={"epub": ("aislado.epub", f, "application/epub+zip")},
                data={"title": "Aislado"},
            )

        assert response.status_code == 201
        assert (workspace / "db" / "escribiendo.db").exists()
        assert Path(response.json()["file_path"]).resolve().is_relative_to(workspace.resolve())
        assert _snapshot() == before


class TestTestSources:
    """Test modules must not hard-code project storage directories."""

    def test_no_literal_project_paths(self):
        violations = []
        for test_file in sorted(PROJECT_ROOT.joinpath("tests").glob("test_*.py")):
            if test_file.name == Path(__file__).name:
                continue
            content = test_file.read_text(encoding="utf-8")
            for name in GUARDED_DIRS:
                if f'Path("{name}")' in content or f"Path('{name}')" in content:
                    violations.append(f"{test_file.name}: uses Path({name!r})")

        assert not violations, "\n".join(violations)
