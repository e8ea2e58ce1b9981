"""
Tests for MIME type classification.
"""

import pytest

from attachment_pipeline.media.classifier import FileKind, classify


class TestClassify:

    @pytest.mark.parametrize("mime,subtype", [
        ("image/jpeg", "jpeg"),
        ("image/png", "png"),
        ("image/webp", "webp"),
        ("image/heic", "heic"),
        ("image/gif", "gif"),
    ])
    def test_images(self, mime, subtype):
        result = classify(mime)
        assert result.kind is FileKind.IMAGE
        assert result.subtype == subtype
        assert result.is_image

    def test_pdf(self):
        result = classify("application/pdf")
        assert result.kind is FileKind.PDF
        assert result.is_pdf
        assert result.subtype is None

    def test_svg_is_not_an_image(self):
        assert classify("image/svg+xml").kind is FileKind.OTHER

    @pytest.mark.parametrize("mime", [
        "text/plain",
        "application/zip",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "",
        None,
    ])
    def test_everything_else_is_other(self, mime):
        assert classify(mime).kind is FileKind.OTHER

    def test_ignores_case_and_parameters(self):
        assert classify("IMAGE/PNG").subtype == "png"
        assert classify("application/pdf; charset=binary").kind is FileKind.PDF
