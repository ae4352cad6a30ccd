import pytest

from attachvault.domain.errors import ManifestError
from attachvault.domain.naming import (
    copy_filename,
    copy_source_key,
    is_temporary_key,
    permanent_key,
    resource_key_from_href,
    safe_filename,
    temporary_key,
)


class TestSafeFilename:
    """Tests for the store-safe filename transform."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("profile.png", "profile.png"),
            ("my file.png", "my_file.png"),
            ("%21important.txt", "!important.txt"),
            ("caf%C3%A9.txt", "caf_.txt"),
            ("café.txt", "caf_.txt"),
            ("a/b\\c.pdf", "a_b_c.pdf"),
            ("it's (1)*.doc", "it's_(1)*.doc"),
        ],
    )
    def test_transform(self, raw: str, expected: str) -> None:
        """Test decoding followed by replacement of unsafe characters."""
        assert safe_filename(raw) == expected

    @pytest.mark.parametrize(("raw", "expected"), [("", ""), ("%", "_"), ("%%%", "___")])
    def test_never_raises(self, raw: str, expected: str) -> None:
        assert safe_filename(raw) == expected

    def test_malformed_escape_is_replaced(self) -> None:
        """Test that a lone percent sign does not make the transform fail."""
        assert safe_filename("100%.png") == "100_.png"

    def test_invalid_utf8_escape_is_replaced(self) -> None:
        """Test that an escape that is not valid UTF-8 is neutralized."""
        assert safe_filename("%E9t%E9.png") == "_E9t_E9.png"

    def test_only_failing_percents_are_replaced(self) -> None:
        """Test that a valid escape after a broken one is still decoded."""
        assert safe_filename("50% off %21.png") == "50__off_!.png"

    @pytest.mark.parametrize("raw", ["my file.png", "%25%2521.png", "100%.png", "caf%C3%A9.txt", "a%2Fb.png"])
    def test_fixed_point(self, raw: str) -> None:
        """Test that normalizing twice gives the same name."""
        once = safe_filename(raw)
        assert safe_filename(once) == once


class TestKeys:
    """Tests for object key composition."""

    def test_permanent_key(self) -> None:
        assert permanent_key("w1", "a.png") == "w1-a.png"

    def test_temporary_keys_are_unique(self) -> None:
        """Test that the same filename gets a fresh key every time."""
        first, second = temporary_key("a.png"), temporary_key("a.png")
        assert first != second
        assert first.endswith("-a.png.tmp")
        assert is_temporary_key(first)
        assert not is_temporary_key("w1-a.png")

    def test_resource_key_from_href(self) -> None:
        assert resource_key_from_href("/widgets/w1") == "w1"

    def test_copy_source_key(self) -> None:
        assert copy_source_key("/widgets/w0/attachments/a.png") == "w0-a.png"
        assert copy_filename("/widgets/w0/attachments/a.png") == "a.png"

    def test_copy_name_and_key_agree_on_nested_hrefs(self) -> None:
        href = "/widgets/w0/attachments/a.png/extra"
        assert copy_filename(href) == "a.png"
        assert copy_source_key(href) == "w0-a.png"

    @pytest.mark.parametrize("href", ["/widgets/w0/a.png", "/widgets/w0/attachments", "/widgets/w0/attachments/"])
    def test_copy_source_key_rejects_bad_href(self, href: str) -> None:
        """Test that hrefs without an attachment segment are refused."""
        with pytest.raises(ManifestError) as exc:
            copy_source_key(href)
        assert exc.value.code == "invalid.file.href"
