"""Tests for file filtering utilities."""

from unittest.mock import MagicMock

from reviewsync_core.utils.files import changed_text_files, is_text_file


def _pr_file(filename, status="modified"):
    f = MagicMock()
    f.filename = filename
    f.status = status
    return f


class TestIsTextFile:
    def test_markdown_is_text(self):
        assert is_text_file("docs/guide.md") is True

    def test_source_is_text(self):
        assert is_text_file("src/components/Button.tsx") is True

    def test_image_is_not_text(self):
        assert is_text_file("assets/logo.png") is False

    def test_office_document_is_not_text(self):
        assert is_text_file("specs/plan.docx") is False

    def test_lock_file_is_not_text(self):
        assert is_text_file("poetry.lock") is False

    def test_case_insensitive(self):
        assert is_text_file("image.PNG") is False


class TestChangedTextFiles:
    def test_skips_removed_binary_and_excluded(self):
        files = [
            _pr_file("docs/guide.md"),
            _pr_file("docs/old.md", status="removed"),
            _pr_file("assets/logo.png"),
            _pr_file("generated/api.md"),
            _pr_file("README.md", status="added"),
        ]
        assert changed_text_files(files, ["generated/"]) == ["docs/guide.md", "README.md"]

    def test_no_exclude_patterns(self):
        assert changed_text_files([_pr_file("a.md")]) == ["a.md"]
