"""Unit tests for upload staging."""

import os

import pytest

from assistant_sync.services.staging import staged_upload


class TestStagedUpload:
    def test_writes_content_and_cleans_up(self):
        with staged_upload("café au lait", "notes.txt") as path:
            assert os.path.basename(path) == "notes.txt"
            with open(path, encoding="utf-8") as f:
                assert f.read() == "café au lait"
            directory = os.path.dirname(path)

        assert not os.path.exists(path)
        assert not os.path.exists(directory)

    def test_strips_directory_components(self):
        with staged_upload("x", "../../etc/passwd") as path:
            assert os.path.basename(path) == "passwd"
            assert os.path.basename(os.path.dirname(path)).startswith("assistant-upload-")

    def test_generates_name_when_missing(self):
        with staged_upload("x") as path:
            name = os.path.basename(path)
            assert name.startswith("data-")
            assert name.endswith(".txt")

    def test_same_name_does_not_collide(self):
        with staged_upload("a", "same.txt") as first, staged_upload("b", "same.txt") as second:
            assert first != second
            with open(first, encoding="utf-8") as f:
                assert f.read() == "a"

    def test_cleans_up_on_error(self):
        with pytest.raises(RuntimeError):
            with staged_upload("x", "notes.txt") as path:
                raise RuntimeError("upload failed")

        assert not os.path.exists(path)
