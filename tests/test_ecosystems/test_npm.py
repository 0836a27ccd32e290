from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from depradar.core.registry import RegistryClient
from depradar.ecosystems.npm import NpmEcosystem
from depradar.exceptions import ManifestParseError
from depradar.models import DependencyEntry, RegistryVersionSet, PublishedVersion, Status


@pytest.fixture
def npm() -> NpmEcosystem:
    return NpmEcosystem()


@pytest.mark.unit
class TestNpmManifest:
    """Tests for package.json parsing and filtering."""

    def test_merges_dev_dependencies(self, npm: NpmEcosystem) -> None:
        content = json.dumps(
            {
                "name": "app",
                "dependencies": {"react": "^18.2.0", "shared": "1.0.0"},
                "devDependencies": {"jest": "~29.7.0", "shared": "2.0.0"},
                "peerDependencies": {"ignored": "1.0.0"},
            }
        )

        assert npm.parse_manifest(content) == {
            "react": "^18.2.0",
            "shared": "2.0.0",
            "jest": "~29.7.0",
        }

    def test_non_string_specifiers_dropped(self, npm: NpmEcosystem) -> None:
        content = json.dumps({"dependencies": {"a": "1.0.0", "b": {"version": "1"}}})
        assert npm.parse_manifest(content) == {"a": "1.0.0"}

    def test_invalid_json(self, npm: NpmEcosystem) -> None:
        with pytest.raises(ManifestParseError) as exc_info:
            npm.parse_manifest("{", "package.json")

        assert exc_info.value.ecosystem == "npm"
        assert exc_info.value.file_path == "package.json"

    def test_top_level_array_rejected(self, npm: NpmEcosystem) -> None:
        with pytest.raises(ManifestParseError):
            npm.parse_manifest("[]")

    @pytest.mark.parametrize(
        "specifier, reason",
        [
            ("user/repo", "non-registry source"),
            ("github:user/repo", "non-registry source"),
            ("1.x", "wildcard"),
            ("^2.X", "wildcard"),
            ("1.2.*", "wildcard"),
            (">=1.0.0 <2.x", "wildcard"),
            ("latest", "distribution tag"),
        ],
    )
    def test_unsupported(self, npm: NpmEcosystem, specifier: str, reason: str) -> None:
        assert npm.unsupported_reason("pkg", specifier) == reason

    @pytest.mark.parametrize("specifier", ["^1.2.3", "~0.4.0", ">=1.0.0 <2.0.0", "1.0.0"])
    def test_supported(self, npm: NpmEcosystem, specifier: str) -> None:
        assert npm.unsupported_reason("pkg", specifier) is None

    def test_extract_entries_skips_unsupported(self, npm: NpmEcosystem) -> None:
        content = json.dumps(
            {"dependencies": {"react": "^18.2.0", "local": "file:../local", "tag": "next"}}
        )

        assert npm.extract_entries(content) == [DependencyEntry("react", "^18.2.0")]

    def test_normalize_coerces(self, npm: NpmEcosystem) -> None:
        assert npm.normalize_specifier("^1.2").cleaned == "1.2.0"
        assert npm.normalize_specifier("~3").cleaned == "3.0.0"
        assert npm.normalize_specifier(">=1.0.0 <2.0.0").cleaned == "1.0.0"


@pytest.mark.unit
class TestNpmRegistry:
    """Tests for packument decoding."""

    @pytest.mark.asyncio
    async def test_fetch_versions(self, npm: NpmEcosystem) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_json = AsyncMock(
            return_value={
                "versions": {
                    "1.0.0": {},
                    "1.1.0": {"deprecated": "use 2.x"},
                    "2.0.0-rc.1": {},
                },
                "dist-tags": {"latest": "1.1.0", "next": "2.0.0-rc.1"},
                "time": {
                    "modified": "2024-05-01T00:00:00Z",
                    "1.1.0": "2024-04-01T00:00:00Z",
                },
                "license": {"type": "BSD-3-Clause"},
                "maintainers": [{"name": "x"}],
            }
        )

        version_set = await npm.fetch_versions("@scope/pkg", registry)

        registry.get_json.assert_awaited_once()
        assert registry.get_json.await_args.args[0] == "https://registry.npmjs.org/@scope%2Fpkg"
        assert version_set.latest_tag == "1.1.0"
        assert version_set.license == "BSD-3-Clause"
        assert version_set.maintainers_count == 1
        assert version_set.last_update == "2024-05-01T00:00:00Z"
        deprecated = version_set.find("1.1.0")
        assert deprecated.deprecated is True
        assert deprecated.published_at == "2024-04-01T00:00:00Z"
        assert version_set.find("2.0.0-rc.1").prerelease is True

    @pytest.mark.asyncio
    async def test_missing_fields_tolerated(self, npm: NpmEcosystem) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_json = AsyncMock(return_value={"name": "bare"})

        version_set = await npm.fetch_versions("bare", registry)

        assert version_set.is_empty
        assert version_set.license is None
        assert version_set.maintainers_count is None


@pytest.mark.unit
class TestNpmClassification:
    """Tests for range-aware classification."""

    def test_caret_range_admits_newer_minor(self, npm: NpmEcosystem) -> None:
        version_set = RegistryVersionSet(
            name="chalk",
            versions=[PublishedVersion("5.0.0"), PublishedVersion("5.3.0")],
            latest_tag="5.3.0",
        )
        entry = DependencyEntry("chalk", "^5.0.0")

        result = npm.build_result(entry, npm.normalize_specifier("^5.0.0"), version_set)

        assert result.status is Status.CURRENT
        assert result.current_version == "^5.0.0"

    def test_tilde_range_outdated(self, npm: NpmEcosystem) -> None:
        version_set = RegistryVersionSet(name="x", latest_tag="1.3.0")
        entry = DependencyEntry("x", "~1.2.0")

        result = npm.build_result(entry, npm.normalize_specifier("~1.2.0"), version_set)

        assert result.status is Status.OUTDATED

    def test_unparseable_range_falls_back_to_comparison(self, npm: NpmEcosystem) -> None:
        """A specifier the range grammar rejects is still compared by version."""
        version_set = RegistryVersionSet(name="x", latest_tag="3.0.0")
        entry = DependencyEntry("x", "^1.0.0 garbage")

        result = npm.build_result(entry, npm.normalize_specifier(entry.raw_specifier), version_set)

        assert result.status is Status.MAJOR
