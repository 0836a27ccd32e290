from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from depradar.core.registry import RegistryClient
from depradar.ecosystems.golang import GoEcosystem, escape_module_path
from depradar.exceptions import NetworkError

GO_MOD = """\
module github.com/acme/service

go 1.21

require github.com/spf13/cobra v1.8.0

require (
    github.com/stretchr/testify v1.8.4
    golang.org/x/sys v0.15.0 // indirect
    github.com/acme/internal v0.1.0
    github.com/Azure/go-autorest v14.2.0+incompatible // pinned
)

replace github.com/acme/internal => ../internal

replace (
    github.com/spf13/cobra v1.8.0 => github.com/acme/cobra v1.8.1
)
"""


@pytest.fixture
def go() -> GoEcosystem:
    return GoEcosystem()


@pytest.mark.unit
class TestGoManifest:
    """Tests for go.mod parsing."""

    def test_parse(self, go: GoEcosystem) -> None:
        assert go.parse_manifest(GO_MOD, "go.mod") == {
            "github.com/spf13/cobra": "v1.8.0",
            "github.com/stretchr/testify": "v1.8.4",
            "github.com/Azure/go-autorest": "v14.2.0+incompatible",
        }

    def test_comment_lines_ignored(self, go: GoEcosystem) -> None:
        content = "// require example.com/a v1.0.0\nrequire example.com/b v2.0.0\n"
        assert go.parse_manifest(content) == {"example.com/b": "v2.0.0"}

    @pytest.mark.parametrize(
        "name, specifier, reason",
        [
            ("fmt", "v0.0.0", "standard library module"),
            ("example.com/" + "a" * 100, "v1.0.0", "module path too long"),
            ("example.com/pkg", "v0.0.0-20210101000000-abcdef123456", "pseudo-version"),
            (
                "github.com/a/b",
                "v2.0.0-20190101000000-abcdef123456+incompatible",
                "pseudo-version",
            ),
            ("example.com/pkg", "", "empty specifier"),
        ],
    )
    def test_unsupported(self, go: GoEcosystem, name: str, specifier: str, reason: str) -> None:
        assert go.unsupported_reason(name, specifier) == reason

    def test_incompatible_pseudo_version_dropped(self, go: GoEcosystem) -> None:
        content = (
            "module x\n"
            "require github.com/a/b v2.0.0-20190101000000-abcdef123456+incompatible\n"
        )
        assert go.extract_entries(content, "go.mod") == []

    def test_long_specifier_allowed(self, go: GoEcosystem) -> None:
        """Go versions may exceed the generic length ceiling."""
        version = "v1.0.0-" + "a" * 60
        assert go.unsupported_reason("example.com/pkg", version) is None

    def test_normalize_strips_prefix(self, go: GoEcosystem) -> None:
        assert go.normalize_specifier("v1.2.3").cleaned == "1.2.3"
        assert go.normalize_specifier("v14.2.0+incompatible").cleaned == "14.2.0"

    def test_escape_module_path(self) -> None:
        assert escape_module_path("github.com/BurntSushi/toml") == "github.com/!burnt!sushi/toml"


@pytest.mark.unit
class TestGoRegistry:
    """Tests for module proxy lookups."""

    @pytest.mark.asyncio
    async def test_fetch_versions(self, go: GoEcosystem) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_text = AsyncMock(
            return_value="v1.0.0\nv1.1.0\nv0.0.0-20230101000000-abcdefabcdef\n\nv2.0.0-beta.1\n"
        )
        registry.get_json = AsyncMock(
            return_value={"licenses": ["MIT"], "commitTime": "2024-02-02T00:00:00Z"}
        )

        version_set = await go.fetch_versions("github.com/Masterminds/semver", registry)

        assert registry.get_text.await_args.args[0] == (
            "https://proxy.golang.org/github.com/!masterminds/semver/@v/list"
        )
        assert [v.version for v in version_set] == ["v1.0.0", "v1.1.0", "v2.0.0-beta.1"]
        assert version_set.license == "MIT"
        assert version_set.last_update == "2024-02-02T00:00:00Z"
        assert go.latest_version(version_set) == "v2.0.0-beta.1"
        assert go.latest_stable(version_set) == "v1.1.0"

    @pytest.mark.asyncio
    async def test_metadata_failure_is_not_fatal(self, go: GoEcosystem) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_text = AsyncMock(return_value="v1.0.0\n")
        registry.get_json = AsyncMock(side_effect=NetworkError("pkg.go.dev down"))

        version_set = await go.fetch_versions("example.com/pkg", registry)

        assert len(version_set) == 1
        assert version_set.license is None

    @pytest.mark.asyncio
    async def test_proxy_failure_propagates(self, go: GoEcosystem) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_text = AsyncMock(side_effect=NetworkError("proxy down"))

        with pytest.raises(NetworkError):
            await go.fetch_versions("example.com/pkg", registry)
