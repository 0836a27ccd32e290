from __future__ import annotations

import json
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from depradar.core.checker import VersionChecker
from depradar.core.registry import RegistryClient
from depradar.ecosystems import GoEcosystem, NpmEcosystem
from depradar.exceptions import (
    EmptyBatchError,
    ManifestParseError,
    NetworkError,
    PackageNotFoundError,
    UnknownEcosystemError,
)
from depradar.models import DependencyEntry, Status


def packument(*versions: str, latest: str = None, **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "versions": {v: {} for v in versions},
        "dist-tags": {"latest": latest or versions[-1]},
        "time": {v: f"2024-01-0{i + 1}T00:00:00Z" for i, v in enumerate(versions)},
    }
    doc.update(extra)
    return doc


def npm_registry(documents: Dict[str, Any]) -> MagicMock:
    """A registry whose get_json answers from ``documents`` keyed by package name."""

    async def get_json(url: str, **kwargs: Any) -> Dict[str, Any]:
        name = url.rsplit("/", 1)[-1].replace("%2F", "/")
        document = documents.get(name)
        if document is None:
            raise PackageNotFoundError(f"Resource not found: {url}", status_code=404)
        if isinstance(document, Exception):
            raise document
        return document

    registry = MagicMock(spec=RegistryClient)
    registry.get_json = AsyncMock(side_effect=get_json)
    return registry


def manifest(**dependencies: str) -> str:
    return json.dumps({"dependencies": dependencies})


@pytest.mark.unit
class TestCheckManifestScenarios:
    """End-to-end checks against a stubbed registry."""

    @pytest.mark.asyncio
    async def test_up_to_date_dependency_is_current(self) -> None:
        registry = npm_registry({"left-pad": packument("1.2.0", "1.3.0")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(**{"left-pad": "1.3.0"}), "npm")

        assert len(results) == 1
        assert results[0].name == "left-pad"
        assert results[0].status is Status.CURRENT

    @pytest.mark.asyncio
    async def test_major_behind(self) -> None:
        registry = npm_registry({"foo": packument("1.0.0", "2.5.0")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(foo="^1.0.0"), "npm")

        assert results[0].status is Status.MAJOR
        assert results[0].to_json()["status"] == "major"

    @pytest.mark.asyncio
    async def test_range_admitting_latest_is_current(self) -> None:
        registry = npm_registry({"express": packument("4.17.0", "4.19.2")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(express="^4.17.0"), "npm")

        assert results[0].status is Status.CURRENT

    @pytest.mark.asyncio
    async def test_go_module_outdated(self) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_text = AsyncMock(return_value="v1.2.0\nv1.3.0\n")
        registry.get_json = AsyncMock(side_effect=NetworkError("no metadata"))
        checker = VersionChecker(registry)

        results = await checker.check_manifest(
            "module demo\n\nrequire example.com/pkg v1.2.0\n", "go", "go.mod"
        )

        data = results[0].to_json()
        assert data["currentVersion"] == "v1.2.0"
        assert data["latestVersion"] == "v1.3.0"
        assert data["status"] == "outdated"

    @pytest.mark.asyncio
    async def test_empty_dependencies_is_batch_error(self) -> None:
        checker = VersionChecker(npm_registry({}))

        with pytest.raises(EmptyBatchError) as exc_info:
            await checker.check_manifest('{"dependencies": {}}', "npm")

        assert exc_info.value.attempted == 0

    @pytest.mark.asyncio
    async def test_all_unsupported_is_batch_error(self) -> None:
        checker = VersionChecker(npm_registry({}))

        with pytest.raises(EmptyBatchError):
            await checker.check_manifest(manifest(a="latest", b="git+https://x/y.git"), "npm")


@pytest.mark.unit
class TestCheckManifestBehaviour:
    """Tests for filtering, failure isolation and ordering."""

    @pytest.mark.asyncio
    async def test_results_sorted_by_status_then_name(self) -> None:
        registry = npm_registry(
            {
                "zeta": packument("1.0.0"),
                "alpha": packument("1.0.0"),
                "beta": packument("1.0.0", "1.1.0"),
                "gamma": packument("1.0.0", "3.0.0"),
            }
        )
        checker = VersionChecker(registry)

        results = await checker.check_manifest(
            manifest(zeta="1.0.0", alpha="1.0.0", beta="1.0.0", gamma="1.0.0"), "npm"
        )

        assert [r.name for r in results] == ["gamma", "beta", "alpha", "zeta"]

    @pytest.mark.asyncio
    async def test_failed_lookup_drops_only_that_dependency(self) -> None:
        registry = npm_registry({"ok": packument("1.0.0")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(ok="1.0.0", missing="1.0.0"), "npm")

        assert [r.name for r in results] == ["ok"]

    @pytest.mark.asyncio
    async def test_every_lookup_failing_is_batch_error(self) -> None:
        checker = VersionChecker(npm_registry({}))

        with pytest.raises(EmptyBatchError) as exc_info:
            await checker.check_manifest(manifest(a="1.0.0", b="2.0.0"), "npm")

        assert exc_info.value.attempted == 2

    @pytest.mark.asyncio
    async def test_malformed_registry_document_dropped(self) -> None:
        """A response of the wrong shape is logged and skipped."""
        adapter = NpmEcosystem()
        checker = VersionChecker(npm_registry({}))

        with patch.object(adapter, "fetch_versions", AsyncMock(side_effect=KeyError("versions"))):
            result = await checker.check_dependency(
                adapter, DependencyEntry("x", "1.0.0"), checker.registry
            )

        assert result is None

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated(self) -> None:
        registry = npm_registry({"good": packument("1.0.0"), "bad": RuntimeError("boom")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(good="1.0.0", bad="1.0.0"), "npm")

        assert [r.name for r in results] == ["good"]

    @pytest.mark.asyncio
    async def test_registry_without_versions_dropped(self) -> None:
        registry = npm_registry({"empty": {"versions": {}}, "ok": packument("2.0.0")})
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(empty="1.0.0", ok="2.0.0"), "npm")

        assert [r.name for r in results] == ["ok"]

    @pytest.mark.asyncio
    async def test_prerelease_latest_compares_against_stable(self) -> None:
        registry = npm_registry(
            {"next-lib": packument("1.0.0", "1.1.0", "2.0.0-beta.1", latest="2.0.0-beta.1")}
        )
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(**{"next-lib": "1.1.0"}), "npm")

        result = results[0]
        assert result.latest_version == "2.0.0-beta.1"
        assert result.latest_stable == "1.1.0"
        assert result.is_prerelease is True
        assert result.status is Status.CURRENT

    @pytest.mark.asyncio
    async def test_metadata_copied_to_result(self) -> None:
        registry = npm_registry(
            {
                "lodash": packument(
                    "4.17.20",
                    "4.17.21",
                    license="MIT",
                    maintainers=[{"name": "a"}, {"name": "b"}],
                )
            }
        )
        checker = VersionChecker(registry)

        results = await checker.check_manifest(manifest(lodash="4.17.20"), "npm")

        result = results[0]
        assert result.status is Status.OUTDATED
        assert result.license == "MIT"
        assert result.maintainers_count == 2
        assert result.last_update == "2024-01-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_unknown_ecosystem(self) -> None:
        checker = VersionChecker(npm_registry({}))

        with pytest.raises(UnknownEcosystemError):
            await checker.check_manifest("{}", "cobol")

    @pytest.mark.asyncio
    async def test_manifest_parse_error_propagates(self) -> None:
        checker = VersionChecker(npm_registry({}))

        with pytest.raises(ManifestParseError):
            await checker.check_manifest("{not json", "npm")

    @pytest.mark.asyncio
    async def test_adapter_instance_accepted(self) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_text = AsyncMock(return_value="v0.9.0\n")
        registry.get_json = AsyncMock(side_effect=NetworkError("no metadata"))
        checker = VersionChecker(registry)

        results = await checker.check_manifest(
            "require golang.org/x/text v0.9.0\n", GoEcosystem()
        )

        assert results[0].status is Status.CURRENT


@pytest.mark.unit
class TestConcurrency:
    """Tests for per-ecosystem concurrency settings."""

    def test_defaults(self) -> None:
        checker = VersionChecker()

        assert checker.concurrency_for(NpmEcosystem()) == 2
        assert checker.concurrency["python"] == 8

    def test_overrides_and_floor(self) -> None:
        checker = VersionChecker(concurrency={"npm": 6, "go": 0})

        assert checker.concurrency_for(NpmEcosystem()) == 6
        assert checker.concurrency_for(GoEcosystem()) == 1
        assert checker.concurrency["python"] == 8
