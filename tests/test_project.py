"""Tests for book project detection, identity and chapter enumeration."""

import asyncio

import pytest

from xref_index.project import BookProject
from xref_index.scanner.file_scanner import DocumentFilter, order_source_files
from xref_index.utils.config import Settings


def _touch(root, *names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")


class TestRelativePath:
    def test_inside_root(self, project, book_root):
        assert project.relative_path(book_root / "parts" / "ch1.Rmd") == "parts/ch1.Rmd"

    def test_outside_root(self, project, tmp_path):
        assert project.relative_path(tmp_path / "other.Rmd") is None

    def test_unnormalised_path_maps_to_same_key(self, project, book_root):
        messy = book_root / "parts" / ".." / "ch1.Rmd"
        assert project.relative_path(messy) == project.relative_path(book_root / "ch1.Rmd")

    def test_is_book_document(self, project, book_root):
        assert project.is_book_document(book_root / "ch1.Rmd")
        assert not project.is_book_document(book_root / "ch1.md")
        assert not project.is_book_document(book_root)


class TestSourceFiles:
    def test_discovery_orders_index_first_and_skips_underscored(self, project, book_root):
        _touch(book_root, "02-methods.Rmd", "01-intro.Rmd", "index.Rmd", "_header.Rmd", "notes.md")

        assert project.source_files() == ["index.Rmd", "01-intro.Rmd", "02-methods.Rmd"]

    def test_discovery_ignores_subdirectories_by_default(self, project, book_root):
        _touch(book_root, "index.Rmd", "parts/ch1.Rmd")

        assert project.source_files() == ["index.Rmd"]

    def test_rmd_subdir(self, book_root, settings):
        (book_root / "_bookdown.yml").write_text("rmd_subdir: true\n", encoding="utf-8")
        _touch(book_root, "index.Rmd", "parts/ch1.Rmd", "_book/out.Rmd")

        assert BookProject(book_root, settings).source_files() == ["index.Rmd", "parts/ch1.Rmd"]

    def test_rmd_files_list_is_used_verbatim(self, book_root, settings):
        (book_root / "_bookdown.yml").write_text(
            "rmd_files: [\"index.Rmd\", \"z.Rmd\", \"a.Rmd\"]\n", encoding="utf-8"
        )

        assert BookProject(book_root, settings).source_files() == ["index.Rmd", "z.Rmd", "a.Rmd"]

    def test_rmd_files_per_format(self, book_root, settings):
        (book_root / "_bookdown.yml").write_text(
            "rmd_files:\n  html: [\"index.Rmd\", \"web.Rmd\"]\n  latex: [\"index.Rmd\"]\n",
            encoding="utf-8",
        )

        assert BookProject(book_root, settings).source_files() == ["index.Rmd", "web.Rmd"]

    def test_unreadable_config_yields_empty_list(self, book_root, settings):
        (book_root / "_bookdown.yml").write_text("rmd_files: [unclosed\n", encoding="utf-8")

        assert BookProject(book_root, settings).source_files() == []


def test_order_source_files():
    assert order_source_files(["b.Rmd", "_x.Rmd", "index.Rmd", "a.Rmd"]) == ["index.Rmd", "a.Rmd", "b.Rmd"]


class TestBookdownDetection:
    def test_bookdown_yml_marks_a_book(self, project):
        assert project.is_bookdown_site()

    def test_index_site_field_marks_a_book(self, tmp_path, settings):
        root = tmp_path / "site"
        root.mkdir()
        (root / "index.Rmd").write_text(
            "---\ntitle: A Book\nsite: bookdown::bookdown_site\n---\n", encoding="utf-8"
        )

        assert BookProject(root, settings).is_bookdown_site()

    def test_plain_directory_is_not_a_book(self, tmp_path, settings):
        root = tmp_path / "plain"
        root.mkdir()
        _touch(root, "index.Rmd")

        assert not BookProject(root, settings).is_bookdown_site()

    async def test_package_probe_skipped_when_not_required(self, project):
        assert await project.is_package_installed()

    async def test_missing_r_means_not_installed(self, book_root, tmp_path):
        settings = Settings(
            book_root=book_root,
            rscript_path=str(tmp_path / "no-such-Rscript"),
            require_bookdown_package=True,
        )
        project = BookProject(book_root, settings)

        assert not await project.is_bookdown_context()

    async def test_probe_result_is_cached(self, book_root, monkeypatch):
        settings = Settings(book_root=book_root, require_bookdown_package=True)
        project = BookProject(book_root, settings)
        calls = []

        class Done:
            returncode = 0

            async def wait(self):
                return 0

        async def fake_exec(*args, **kwargs):
            calls.append(args)
            return Done()

        monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)

        assert await project.is_package_installed()
        assert await project.is_package_installed()
        assert len(calls) == 1
        assert calls[0][0] == "Rscript"


@pytest.mark.parametrize("name,expected", [
    ("ch1.Rmd", True),
    ("ch1.rmd", True),
    ("ch1.md", False),
    ("_bookdown_files/ch1.Rmd", False),
    ("renv/library/x.Rmd", False),
])
def test_document_filter(tmp_path, name, expected):
    assert DocumentFilter(tmp_path).matches(tmp_path / name) is expected
