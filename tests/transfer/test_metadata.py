"""Tests for metadata merging and Content-Disposition formatting."""

from __future__ import annotations

import pytest

from storjstore.app.transfer.checksum import checksum_matches, compute_checksum
from storjstore.app.transfer.metadata import (
    content_disposition_with,
    custom_metadata_headers,
    merge_metadata,
    resolve_content_disposition,
    sanitize_filename,
    split_metadata,
)


class TestMergeMetadata:
    def test_reserved_fields_override_custom_entries(self):
        merged = merge_metadata(
            {"content-type": "x/evil", "Content-Disposition": "evil", "k": "v"},
            content_type="text/plain",
            content_disposition="inline",
        )

        assert merged == {
            "k": "v",
            "content-type": "text/plain",
            "content-disposition": "inline",
        }

    def test_omits_reserved_fields_that_are_none(self):
        merged = merge_metadata({"content-type": "x/evil", "k": "v"})

        assert merged == {"k": "v"}

    def test_is_idempotent(self):
        once = merge_metadata({"k": "v"}, content_type="text/plain")
        twice = merge_metadata(once, content_type="text/plain")

        assert once == twice

    def test_does_not_mutate_input(self):
        custom = {"content-type": "x/evil"}

        merge_metadata(custom, content_type="text/plain")

        assert custom == {"content-type": "x/evil"}

    def test_split_recovers_fields(self):
        merged = merge_metadata(
            {"k": "v"}, content_type="text/plain", content_disposition="inline"
        )

        assert split_metadata(merged) == ("text/plain", "inline", {"k": "v"})


class TestContentDisposition:
    def test_attachment_with_ascii_filename(self):
        assert (
            content_disposition_with(type="attachment", filename="cool_data.txt")
            == "attachment; filename=\"cool_data.txt\"; filename*=UTF-8''cool_data.txt"
        )

    def test_defaults_to_inline(self):
        assert content_disposition_with(filename="a.txt").startswith("inline;")
        assert content_disposition_with(type="bogus", filename="a.txt").startswith(
            "inline;"
        )

    def test_non_ascii_filename(self):
        value = content_disposition_with(type="attachment", filename="résumé.pdf")

        assert value == (
            "attachment; filename=\"resume.pdf\"; "
            "filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"
        )

    def test_untransliterable_characters_become_question_marks(self):
        value = content_disposition_with(type="inline", filename="データ.txt")

        assert 'filename="%3F%3F%3F.txt"' in value
        assert "filename*=UTF-8''%E3%83%87" in value

    def test_spaces_and_quotes_are_escaped(self):
        value = content_disposition_with(type="attachment", filename='my "file".txt')

        assert 'filename="my %22file%22.txt"' in value
        assert "filename*=UTF-8''my%20%22file%22.txt" in value

    def test_sanitize_filename_replaces_unsafe_characters(self):
        assert sanitize_filename(" a/b\\c:d;e|f$g%h\n ") == "a-b-c-d-e-f-g-h"

    @pytest.mark.parametrize(
        ("disposition", "filename"),
        [(None, "a.txt"), ("inline", None), (None, None), ("", "a.txt")],
    )
    def test_resolve_requires_both_parts(self, disposition, filename):
        assert resolve_content_disposition(disposition, filename) is None

    def test_resolve_formats_when_both_present(self):
        assert resolve_content_disposition("attachment", "a.txt") == (
            "attachment; filename=\"a.txt\"; filename*=UTF-8''a.txt"
        )


def test_custom_metadata_headers():
    assert custom_metadata_headers({"owner": "ann", "tag": "x"}) == {
        "x-amz-meta-owner": "ann",
        "x-amz-meta-tag": "x",
    }


def test_checksum_is_base64_md5():
    assert compute_checksum(b"") == "1B2M2Y8AsgTpgAmY7PhCfg=="
    assert compute_checksum(b"hello") == "XUFAKrxLKna5cZ2REBfFkg=="
    assert checksum_matches(b"hello", "XUFAKrxLKna5cZ2REBfFkg==")
    assert not checksum_matches(b"hello!", "XUFAKrxLKna5cZ2REBfFkg==")
