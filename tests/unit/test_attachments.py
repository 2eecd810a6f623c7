"""Tests for medical-record uploads."""
import base64

import pytest

from registration.attachments import (
    AttachmentTooLargeError,
    FileSelection,
    SelectedFile,
    encode_files,
    summarize,
)


class TestFileSelection:

    def test_summary_lists_names_and_total(self):
        selection = FileSelection()
        summary = selection.select([
            SelectedFile("a.pdf", b"x" * (1024 * 1024)),
            SelectedFile("b.jpg", b"y" * (512 * 1024)),
        ])
        assert summary == "Selected: a.pdf, b.jpg (1.50 MB)"

    def test_over_limit_rejects_and_clears(self):
        selection = FileSelection(limit_bytes=10)
        selection.select([SelectedFile("ok.txt", b"12345")])
        with pytest.raises(AttachmentTooLargeError) as exc_info:
            selection.select([SelectedFile("big.bin", b"x" * 11)])
        assert selection.files == []
        assert exc_info.value.total_bytes == 11

    def test_limit_message(self):
        error = AttachmentTooLargeError(30 * 1024 * 1024)
        assert str(error) == "The total file size cannot exceed 25 MB. Please select smaller files."

    def test_exactly_at_limit_is_accepted(self):
        selection = FileSelection(limit_bytes=4)
        selection.select([SelectedFile("a", b"1234")])
        assert len(selection.files) == 1

    def test_empty_selection(self):
        assert FileSelection().select([]) == ""
        assert summarize([]) == ""

    def test_from_path(self, tmp_path):
        path = tmp_path / "record.pdf"
        path.write_bytes(b"%PDF-1.4")
        selected = SelectedFile.from_path(path)
        assert selected.name == "record.pdf"
        assert selected.content_type == "application/pdf"
        assert selected.size == 8


class TestEncoding:

    def test_data_url_with_mime(self):
        (attachment,) = encode_files([SelectedFile("shot.pdf", b"%PDF", "application/pdf")])
        assert attachment.name == "shot.pdf"
        assert attachment.type == "application/pdf"
        assert attachment.data == "data:application/pdf;base64," + base64.b64encode(b"%PDF").decode()

    def test_unknown_type_falls_back_to_octet_stream(self):
        (attachment,) = encode_files([SelectedFile("blob", b"\x00\x01")])
        assert attachment.type == ""
        assert attachment.data.startswith("data:application/octet-stream;base64,")
