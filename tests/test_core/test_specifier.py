from __future__ import annotations

import pytest

from depradar.core.specifier import normalize_specifier, unsupported_reason


@pytest.mark.unit
class TestUnsupportedReason:
    """Tests for the generic specifier filter."""

    @pytest.mark.parametrize(
        "specifier, reason",
        [
            ("", "empty specifier"),
            ("   ", "empty specifier"),
            ("git+https://github.com/a/b.git", "non-registry source"),
            ("github:user/repo", "non-registry source"),
            ("file:../local", "non-registry source"),
            ("workspace:*", "non-registry source"),
            ("npm:other-package@1.0.0", "non-registry source"),
            ("./vendor/lib", "non-registry source"),
            ("https://example.com/pkg.tgz", "non-registry source"),
            ("latest", "distribution tag"),
            ("NEXT", "distribution tag"),
            ("*", "wildcard"),
            ("x", "wildcard"),
        ],
    )
    def test_rejected(self, specifier: str, reason: str) -> None:
        assert unsupported_reason(specifier) == reason

    def test_too_long(self) -> None:
        assert unsupported_reason("1" * 51) == "specifier too long"
        assert unsupported_reason("1" * 51, max_length=100) is None

    @pytest.mark.parametrize("specifier", ["^1.2.0", ">=2.0,<3", "1.0.0", "v1.4.0", "~> 2.1"])
    def test_accepted(self, specifier: str) -> None:
        assert unsupported_reason(specifier) is None


@pytest.mark.unit
class TestNormalizeSpecifier:
    """Tests for normalize_specifier."""

    @pytest.mark.parametrize(
        "specifier, cleaned",
        [
            ("1.2.3", "1.2.3"),
            ("^1.2.0", "1.2.0"),
            ("~1.2", "1.2"),
            (">= 2.0.0", "2.0.0"),
            (">=2.0,<3", "2.0"),
            ("^1.0 || ^2.0", "1.0"),
            ("v1.4.0", "1.4.0"),
            ("1.0.0+build.1", "1.0.0"),
            ("1.*", "1.0"),
            ("==2.31.0", "2.31.0"),
        ],
    )
    def test_cleaned(self, specifier: str, cleaned: str) -> None:
        parsed = normalize_specifier(specifier)

        assert parsed is not None
        assert parsed.cleaned == cleaned
        assert parsed.original == specifier

    def test_range_flags(self) -> None:
        caret = normalize_specifier("^1.2.0")
        exact = normalize_specifier("1.2.0")
        compound = normalize_specifier("1.0 || 2.0")

        assert caret.is_range and caret.range_operator == "^"
        assert not exact.is_range and exact.range_operator == ""
        assert compound.is_range

    def test_no_numeric_prefix(self) -> None:
        assert normalize_specifier("latest") is None
        assert normalize_specifier("") is None
        assert normalize_specifier("^") is None

    def test_coerce(self) -> None:
        """Coercion finds the first version anywhere and pads it."""
        assert normalize_specifier("^1.2", coerce=True).cleaned == "1.2.0"
        assert normalize_specifier(">=4 <5", coerce=True).cleaned == "4.0.0"
        assert normalize_specifier("^latest", coerce=True) is None

    def test_custom_operators(self) -> None:
        """Characters outside the operator set are not stripped."""
        assert normalize_specifier("!1.0", operators="^~") is None
