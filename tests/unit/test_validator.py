"""Unit tests for uploadgate/upload/validator.py — header validation.

Covers:
  - Content-Type: absent / empty → missing; non image/* → unsupported
  - Content-Disposition: absent → missing; grammar mismatch → invalid
  - Filename extraction is exact (no trimming, no unescaping)
  - Content-Type is checked before Content-Disposition
"""

from __future__ import annotations

import pytest

from uploadgate.upload.models import Accepted, Rejected, RejectionReason
from uploadgate.upload.validator import validate_headers


class TestContentType:
    @pytest.mark.parametrize("content_type", [None, ""])
    def test_missing_content_type(self, content_type) -> None:
        outcome = validate_headers(content_type, 'attachment; filename="a.png"')
        assert outcome == Rejected(RejectionReason.MISSING_CONTENT_TYPE)

    @pytest.mark.parametrize(
        "content_type",
        ["application/pdf", "text/plain", "Image/png", " image/png", "video/mp4"],
    )
    def test_non_image_is_unsupported(self, content_type: str) -> None:
        outcome = validate_headers(content_type, 'attachment; filename="a.png"')
        assert outcome == Rejected(RejectionReason.UNSUPPORTED_MEDIA_TYPE)

    @pytest.mark.parametrize(
        "content_type", ["image/png", "image/jpeg", "image/svg+xml", "image/"]
    )
    def test_image_prefix_accepted(self, content_type: str) -> None:
        outcome = validate_headers(content_type, 'attachment; filename="a.png"')
        assert outcome == Accepted("a.png")

    def test_content_type_checked_before_disposition(self) -> None:
        """A request with both headers bad reports the Content-Type problem."""
        outcome = validate_headers("application/pdf", None)
        assert outcome == Rejected(RejectionReason.UNSUPPORTED_MEDIA_TYPE)


class TestContentDisposition:
    @pytest.mark.parametrize("disposition", [None, ""])
    def test_missing_disposition(self, disposition) -> None:
        outcome = validate_headers("image/png", disposition)
        assert outcome == Rejected(RejectionReason.MISSING_CONTENT_DISPOSITION)

    @pytest.mark.parametrize(
        "disposition",
        [
            "inline",
            'inline; filename="a.png"',
            'attachment;filename="a.png"',  # no space after ';'
            "attachment; filename=a.png",  # unquoted
            'attachment; filename=""',  # empty name
            'attachment; filename="a.png"; size=3',  # trailing parameter
            ' attachment; filename="a.png"',  # leading space
            'attachment; filename="a"b.png"',  # quote inside the name
            'Attachment; filename="a.png"',
        ],
    )
    def test_invalid_disposition(self, disposition: str) -> None:
        outcome = validate_headers("image/png", disposition)
        assert outcome == Rejected(RejectionReason.INVALID_CONTENT_DISPOSITION)

    def test_multiple_spaces_accepted(self) -> None:
        outcome = validate_headers("image/png", 'attachment;    filename="cat.png"')
        assert outcome == Accepted("cat.png")

    def test_filename_extracted_verbatim(self) -> None:
        outcome = validate_headers("image/jpeg", 'attachment; filename=" my photo (1).JPG "')
        assert outcome == Accepted(" my photo (1).JPG ")

    def test_filename_with_unicode(self) -> None:
        outcome = validate_headers("image/png", 'attachment; filename="café.png"')
        assert outcome == Accepted("café.png")

    def test_validation_is_deterministic(self) -> None:
        args = ("image/png", 'attachment; filename="a.png"')
        assert validate_headers(*args) == validate_headers(*args)
