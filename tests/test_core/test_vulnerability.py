from __future__ import annotations

from typing import Any, Dict, List
from unittest.mock import AsyncMock, MagicMock

import pytest

from depradar.core.registry import RegistryClient
from depradar.core.vulnerability import (
    ADVISORY_SOURCES,
    NuGetSource,
    OSVSource,
    PackagistSource,
    VulnerabilityScanner,
    derive_severity,
)
from depradar.ecosystems import DotnetEcosystem, NpmEcosystem, PhpEcosystem, PythonEcosystem
from depradar.exceptions import (
    BatchTooLargeError,
    EmptyBatchError,
    NetworkError,
    PackageNotFoundError,
    UnknownEcosystemError,
)
from depradar.models import Severity
from depradar.constants import NUGET_SERVICE_INDEX, NUGET_VULNERABILITY_TYPE


def osv_vuln(
    vuln_id: str,
    name: str,
    events: List[Dict[str, str]],
    *,
    ecosystem: str = "npm",
    **extra: Any,
) -> Dict[str, Any]:
    vuln: Dict[str, Any] = {
        "id": vuln_id,
        "affected": [
            {
                "package": {"name": name, "ecosystem": ecosystem},
                "ranges": [{"type": "SEMVER", "events": events}],
            }
        ],
    }
    vuln.update(extra)
    return vuln


def osv_registry(pages_by_package: Dict[str, List[Dict[str, Any]]]) -> MagicMock:
    async def post_json(url: str, payload: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        name = payload["package"]["name"]
        result = pages_by_package.get(name, [])
        if isinstance(result, Exception):
            raise result
        return {"vulns": result}

    registry = MagicMock(spec=RegistryClient)
    registry.post_json = AsyncMock(side_effect=post_json)
    return registry


@pytest.mark.unit
class TestDeriveSeverity:
    """Tests for derive_severity."""

    @pytest.mark.parametrize(
        "explicit, expected",
        [
            ("CRITICAL", Severity.CRITICAL),
            ("high", Severity.HIGH),
            ("MEDIUM", Severity.MODERATE),
            ("moderate", Severity.MODERATE),
            ("low", Severity.LOW),
            ("informational", Severity.INFO),
            (0, Severity.LOW),
            (1, Severity.MODERATE),
            (2, Severity.HIGH),
            (3, Severity.CRITICAL),
        ],
    )
    def test_explicit(self, explicit: Any, expected: Severity) -> None:
        assert derive_severity(explicit) is expected

    @pytest.mark.parametrize(
        "score, expected",
        [
            ("9.8", Severity.CRITICAL),
            (7.2, Severity.HIGH),
            ("4.0", Severity.MODERATE),
            ("0.1", Severity.LOW),
        ],
    )
    def test_cvss_bands(self, score: Any, expected: Severity) -> None:
        assert derive_severity(None, [score]) is expected

    def test_highest_score_wins(self) -> None:
        assert derive_severity(None, ["3.1", "8.1"]) is Severity.HIGH

    def test_vector_strings_skipped(self) -> None:
        vector = "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H"
        assert derive_severity(None, [vector], "Denial of service") is Severity.MODERATE

    def test_keywords(self) -> None:
        assert derive_severity(text="Remote code execution in parser") is Severity.CRITICAL
        assert derive_severity(text="Authentication bypass") is Severity.HIGH
        assert derive_severity(text="Information disclosure") is Severity.MODERATE
        assert derive_severity(text="Low impact issue") is Severity.LOW

    def test_keywords_need_word_boundaries(self) -> None:
        """``highlight`` does not mean ``high``."""
        assert derive_severity(text="Incorrect highlighting") is Severity.MODERATE

    def test_unknown_explicit_falls_through(self) -> None:
        assert derive_severity("severe", ["7.5"]) is Severity.HIGH
        assert derive_severity(True, ["9.1"]) is Severity.CRITICAL
        assert derive_severity(7) is Severity.MODERATE


@pytest.mark.unit
class TestOSVSource:
    """Tests for OSV matching."""

    @pytest.mark.asyncio
    async def test_fixed_range_with_cvss(self) -> None:
        vuln = osv_vuln(
            "GHSA-aaaa-bbbb-cccc",
            "example",
            [{"introduced": "1.0.0"}, {"fixed": "1.5.0"}],
            summary="Prototype pollution",
            aliases=["CVE-2024-0001"],
            severity=[{"type": "CVSS_V3", "score": "7.2"}],
            references=[{"type": "ADVISORY", "url": "https://github.com/advisories/GHSA"}],
            published="2024-03-01T00:00:00Z",
        )
        source = OSVSource(osv_registry({"example": [vuln]}))

        matches = await source.advisories_for("example", "1.4.9", NpmEcosystem())

        assert len(matches) == 1
        match = matches[0]
        assert match.severity is Severity.HIGH
        assert match.cve == "CVE-2024-0001"
        assert match.title == "Prototype pollution"
        assert match.affected_versions == ">=1.0.0, <1.5.0"
        assert match.reference == "https://github.com/advisories/GHSA"
        assert match.source == "OSV"
        assert match.reported_at == "2024-03-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_fixed_version_not_affected(self) -> None:
        vuln = osv_vuln("X-1", "example", [{"introduced": "1.0.0"}, {"fixed": "1.5.0"}])
        source = OSVSource(osv_registry({"example": [vuln]}))

        assert await source.advisories_for("example", "1.5.0", NpmEcosystem()) == []

    @pytest.mark.asyncio
    async def test_defaults_when_metadata_missing(self) -> None:
        vuln = osv_vuln("X-2", "example", [{"introduced": "0"}])
        source = OSVSource(osv_registry({"example": [vuln]}))

        match = (await source.advisories_for("example", "0.1.0", NpmEcosystem()))[0]

        assert match.title == "X-2"
        assert match.reference == "https://osv.dev/vulnerability/X-2"
        assert match.cve is None
        assert match.severity is Severity.MODERATE

    @pytest.mark.asyncio
    async def test_pagination(self) -> None:
        first = osv_vuln("A", "pkg", [{"introduced": "0"}])
        second = osv_vuln("B", "pkg", [{"introduced": "0"}])
        registry = MagicMock(spec=RegistryClient)
        registry.post_json = AsyncMock(
            side_effect=[
                {"vulns": [first], "next_page_token": "tok"},
                {"vulns": [second]},
            ]
        )
        source = OSVSource(registry)

        matches = await source.advisories_for("pkg", "1.0.0", NpmEcosystem())

        assert [m.advisory_id for m in matches] == ["A", "B"]
        second_payload = registry.post_json.await_args_list[1].args[1]
        assert second_payload["page_token"] == "tok"

    def test_explicit_versions_list(self) -> None:
        vuln = {
            "affected": [
                {"package": {"name": "Django", "ecosystem": "PyPI"}, "versions": ["3.2.1", "3.2.2"]}
            ]
        }

        adapter = PythonEcosystem()
        assert OSVSource.affects(vuln, "django", "PyPI", "3.2.2", adapter)
        assert not OSVSource.affects(vuln, "django", "PyPI", "3.2.3", adapter)

    def test_other_package_or_ecosystem_ignored(self) -> None:
        vuln = osv_vuln("X", "other", [{"introduced": "0"}])
        assert not OSVSource.affects(vuln, "mine", "npm", "1.0.0", NpmEcosystem())

        vuln = osv_vuln("X", "mine", [{"introduced": "0"}], ecosystem="PyPI")
        assert not OSVSource.affects(vuln, "mine", "npm", "1.0.0", NpmEcosystem())

    def test_git_ranges_ignored(self) -> None:
        vuln = {
            "affected": [
                {
                    "package": {"name": "mine"},
                    "ranges": [{"type": "GIT", "events": [{"introduced": "0"}]}],
                }
            ]
        }
        assert not OSVSource.affects(vuln, "mine", "npm", "1.0.0", NpmEcosystem())

    def test_unparseable_range_counts_as_affected(self) -> None:
        vuln = osv_vuln("X", "mine", [{"introduced": "1.0.0"}, {"fixed": "not-a-version"}])
        assert OSVSource.affects(vuln, "mine", "npm", "9.9.9", NpmEcosystem())

    @pytest.mark.parametrize(
        "extra, expected",
        [
            ({"ecosystem_specific": {"severity": "LOW"}}, Severity.LOW),
            (
                {
                    "database_specific": {"severity": "CRITICAL"},
                    "ecosystem_specific": {"severity": "LOW"},
                },
                Severity.CRITICAL,
            ),
            (
                {
                    "database_specific": {"severity": "UNKNOWN"},
                    "ecosystem_specific": {"severity": "medium"},
                    "severity": [{"type": "CVSS_V3", "score": "9.8"}],
                },
                Severity.MODERATE,
            ),
        ],
        ids=["ecosystem-specific", "database-specific-first", "unknown-name-skipped"],
    )
    def test_explicit_severity_sections(self, extra: Dict[str, Any], expected: Severity) -> None:
        vuln = osv_vuln("X", "mine", [{"introduced": "0"}], **extra)
        assert OSVSource._severity(vuln) is expected

    def test_affected_entry_ecosystem_specific(self) -> None:
        vuln = osv_vuln("X", "mine", [{"introduced": "0"}])
        vuln["affected"][0]["ecosystem_specific"] = {"severity": "HIGH"}

        assert OSVSource._severity(vuln) is Severity.HIGH

    @pytest.mark.asyncio
    async def test_no_osv_ecosystem(self) -> None:
        class Unmapped(NpmEcosystem):
            osv_ecosystem = None

        registry = osv_registry({})
        source = OSVSource(registry)

        assert await source.advisories_for("x", "1.0.0", Unmapped()) == []
        registry.post_json.assert_not_awaited()


@pytest.mark.unit
class TestPackagistSource:
    """Tests for Packagist advisories."""

    @staticmethod
    def registry_returning(data: Any) -> MagicMock:
        registry = MagicMock(spec=RegistryClient)
        registry.get_json_value = AsyncMock(return_value=data)
        return registry

    @pytest.mark.asyncio
    async def test_matching_advisory(self) -> None:
        data = {
            "advisories": {
                "symfony/http-kernel": [
                    {
                        "advisoryId": "PKSA-1",
                        "title": "CVE-2022-24894: Prevent storing cookie headers",
                        "affectedVersions": ">=5.0.0,<5.4.20|>=6.0.0,<6.0.20",
                        "cve": "CVE-2022-24894",
                        "link": "https://symfony.com/cve-2022-24894",
                        "reportedAt": "2023-02-01 08:00:00",
                        "severity": "high",
                    },
                    {
                        "advisoryId": "PKSA-2",
                        "title": "Old issue",
                        "affectedVersions": "<4.0.0",
                    },
                ]
            }
        }
        registry = self.registry_returning(data)
        source = PackagistSource(registry)

        matches = await source.advisories_for("symfony/http-kernel", "5.4.0", PhpEcosystem())

        assert [m.advisory_id for m in matches] == ["PKSA-1"]
        assert matches[0].severity is Severity.HIGH
        assert matches[0].cve == "CVE-2022-24894"
        assert matches[0].source == "Packagist"
        registry.get_json_value.assert_awaited_once()
        assert registry.get_json_value.await_args.kwargs["params"] == {
            "packages[]": "symfony/http-kernel"
        }

    @pytest.mark.asyncio
    async def test_flat_shape_and_defaults(self) -> None:
        data = {"vendor/pkg": [{"id": "X1", "affectedVersions": ">=1.0"}]}
        source = PackagistSource(self.registry_returning(data))

        match = (await source.advisories_for("vendor/pkg", "1.2", PhpEcosystem()))[0]

        assert match.advisory_id == "X1"
        assert match.title == "Security Advisory"
        assert match.reference == "https://packagist.org/packages/vendor/pkg"

    @pytest.mark.asyncio
    async def test_empty_affected_versions_skipped(self) -> None:
        data = [{"advisoryId": "E", "affectedVersions": ""}]
        source = PackagistSource(self.registry_returning(data))

        assert await source.advisories_for("vendor/pkg", "1.0", PhpEcosystem()) == []

    @pytest.mark.asyncio
    async def test_unknown_package(self) -> None:
        registry = MagicMock(spec=RegistryClient)
        registry.get_json_value = AsyncMock(side_effect=PackageNotFoundError("missing"))

        assert await PackagistSource(registry).advisories_for("a/b", "1.0", PhpEcosystem()) == []

    def test_unparseable_constraint_counts_as_affected(self) -> None:
        assert PackagistSource.affects(">=1.0 <<2", "5.0", PhpEcosystem())

    def test_extract_shapes(self) -> None:
        assert PackagistSource._extract([{"a": 1}, "junk"], "x") == [{"a": 1}]
        assert PackagistSource._extract({"advisories": [{"a": 1}]}, "x") == [{"a": 1}]
        assert PackagistSource._extract({"advisories": {"y": [{"a": 1}]}}, "x") == []
        assert PackagistSource._extract("nonsense", "x") == []


def nuget_registry(pages: Dict[str, Any], *, with_resource: bool = True) -> MagicMock:
    documents: Dict[str, Any] = {
        NUGET_SERVICE_INDEX: {
            "resources": (
                [{"@id": "https://nuget.test/vuln/index.json", "@type": NUGET_VULNERABILITY_TYPE}]
                if with_resource
                else []
            )
        },
        "https://nuget.test/vuln/index.json": [{"@id": url} for url in pages],
    }
    documents.update(pages)

    async def get_cached_json(url: str, **kwargs: Any) -> Any:
        value = documents[url]
        if isinstance(value, Exception):
            raise value
        return value

    registry = MagicMock(spec=RegistryClient)
    registry.get_cached_json = AsyncMock(side_effect=get_cached_json)
    return registry


@pytest.mark.unit
class TestNuGetSource:
    """Tests for the NuGet vulnerability index."""

    @pytest.mark.asyncio
    async def test_matching_record(self) -> None:
        page = {
            "newtonsoft.json": [
                {
                    "url": "https://github.com/advisories/GHSA-5crp-9r3c-p9vr",
                    "severity": 2,
                    "versions": "(, 13.0.1)",
                }
            ]
        }
        source = NuGetSource(nuget_registry({"https://nuget.test/vuln/page0.json": page}))

        matches = await source.advisories_for("Newtonsoft.Json", "12.0.3", DotnetEcosystem())

        assert len(matches) == 1
        assert matches[0].advisory_id == "GHSA-5crp-9r3c-p9vr"
        assert matches[0].severity is Severity.HIGH
        assert matches[0].title == "Known vulnerability in Newtonsoft.Json"
        assert matches[0].affected_versions == "(, 13.0.1)"

    @pytest.mark.asyncio
    async def test_patched_version_not_affected(self) -> None:
        page = {"newtonsoft.json": [{"url": "u/1", "severity": 2, "versions": "(, 13.0.1)"}]}
        source = NuGetSource(nuget_registry({"https://nuget.test/vuln/page0.json": page}))

        assert await source.advisories_for("Newtonsoft.Json", "13.0.1", DotnetEcosystem()) == []

    @pytest.mark.asyncio
    async def test_failed_page_skipped(self) -> None:
        good = {"pkg": [{"url": "u/GOOD", "severity": 0, "versions": "[1.0, 2.0)"}]}
        source = NuGetSource(
            nuget_registry(
                {
                    "https://nuget.test/vuln/page0.json": NetworkError("down"),
                    "https://nuget.test/vuln/page1.json": good,
                }
            )
        )

        matches = await source.advisories_for("Pkg", "1.5", DotnetEcosystem())

        assert [m.advisory_id for m in matches] == ["GOOD"]

    @pytest.mark.asyncio
    async def test_missing_vulnerability_resource(self) -> None:
        source = NuGetSource(nuget_registry({}, with_resource=False))
        assert await source.advisories_for("Pkg", "1.0", DotnetEcosystem()) == []

    def test_range_list_and_unparseable(self) -> None:
        adapter = DotnetEcosystem()

        assert NuGetSource.affects(["[1.0, 1.1)", "[2.0, 2.1)"], "2.0.5", adapter)
        assert not NuGetSource.affects(["[1.0, 1.1)"], "1.5", adapter)
        assert NuGetSource.affects("[1.0", "9.0", adapter)


@pytest.mark.unit
class TestVulnerabilityScanner:
    """Tests for VulnerabilityScanner.scan."""

    @pytest.mark.asyncio
    async def test_report_sorted_by_severity_then_name(self) -> None:
        registry = osv_registry(
            {
                "aaa": [],
                "moderate-pkg": [osv_vuln("M", "moderate-pkg", [{"introduced": "0"}])],
                "critical-pkg": [
                    osv_vuln(
                        "C",
                        "critical-pkg",
                        [{"introduced": "0"}],
                        database_specific={"severity": "CRITICAL"},
                    )
                ],
            }
        )
        scanner = VulnerabilityScanner(registry)

        report = await scanner.scan(
            {"aaa": "1.0.0", "moderate-pkg": "^2.0.0", "critical-pkg": "3.0.0"}, "npm"
        )

        assert [p.package_name for p in report.packages] == [
            "critical-pkg",
            "moderate-pkg",
            "aaa",
        ]
        assert report.packages[1].current_version == "^2.0.0"
        summary = report.summary()
        assert summary["total"] == 3
        assert summary["vulnerable"] == 2
        assert summary["critical"] == 1
        assert summary["moderate"] == 1

    @pytest.mark.asyncio
    async def test_declared_version_is_normalized(self) -> None:
        registry = osv_registry(
            {"example": [osv_vuln("X", "example", [{"introduced": "1.0.0"}, {"fixed": "1.5.0"}])]}
        )
        scanner = VulnerabilityScanner(registry)

        report = await scanner.scan({"example": "^1.4.9"}, "npm")

        assert report.packages[0].is_vulnerable

    @pytest.mark.asyncio
    async def test_failed_lookup_dropped(self) -> None:
        registry = osv_registry({"down": NetworkError("timeout"), "up": []})
        scanner = VulnerabilityScanner(registry)

        report = await scanner.scan({"down": "1.0.0", "up": "1.0.0"}, "npm")

        assert [p.package_name for p in report.packages] == ["up"]

    @pytest.mark.asyncio
    async def test_unnormalizable_dropped(self) -> None:
        scanner = VulnerabilityScanner(osv_registry({"ok": []}))

        report = await scanner.scan({"ok": "1.0.0", "tagged": "latest"}, "npm")

        assert [p.package_name for p in report.packages] == ["ok"]

    @pytest.mark.asyncio
    async def test_empty_batch(self) -> None:
        with pytest.raises(EmptyBatchError):
            await VulnerabilityScanner(osv_registry({})).scan({}, "npm")

    @pytest.mark.asyncio
    async def test_batch_too_large(self) -> None:
        scanner = VulnerabilityScanner(osv_registry({}), max_packages=2)

        with pytest.raises(BatchTooLargeError) as exc_info:
            await scanner.scan({"a": "1", "b": "1", "c": "1"}, "npm")

        assert exc_info.value.size == 3
        assert exc_info.value.limit == 2

    @pytest.mark.asyncio
    async def test_unknown_ecosystem(self) -> None:
        with pytest.raises(UnknownEcosystemError):
            await VulnerabilityScanner(osv_registry({})).scan({"a": "1.0"}, "fortran")

    def test_source_selection(self) -> None:
        scanner = VulnerabilityScanner()
        registry = MagicMock(spec=RegistryClient)

        assert isinstance(scanner.source_for(PhpEcosystem(), registry), PackagistSource)
        assert isinstance(scanner.source_for(DotnetEcosystem(), registry), NuGetSource)
        assert isinstance(scanner.source_for(NpmEcosystem(), registry), OSVSource)
        assert set(ADVISORY_SOURCES) == {"osv", "packagist", "nuget"}
