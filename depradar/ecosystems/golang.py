"""Go modules ecosystem adapter."""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from depradar.core.registry import RegistryClient
from depradar.ecosystems.base import Ecosystem
from depradar.exceptions import NetworkError
from depradar.models import PublishedVersion, RegistryVersionSet
from depradar.utils.logger import get_logger
from depradar.utils.version_utils import is_pseudo_version
from depradar.constants import GO_PKG_API, GO_PROXY_LIST, MAX_GO_SPECIFIER_LENGTH

logger = get_logger("ecosystems.go")

_REQUIRE_LINE_RE = re.compile(r"^(\S+)\s+(\S+)")
_LOCAL_PATH_PREFIXES = ("./", "../", "/")


def escape_module_path(module: str) -> str:
    """Apply the module proxy case encoding (``Azure`` → ``!azure``).

    Example:
        >>> escape_module_path("github.com/Azure/azure-sdk-for-go")
        'github.com/!azure/azure-sdk-for-go'
    """
    return re.sub(r"[A-Z]", lambda m: "!" + m.group(0).lower(), module)


def _strip_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


class GoEcosystem(Ecosystem):
    """``go.mod`` manifests resolved against proxy.golang.org."""

    name = "go"
    display_name = "Go"
    aliases = ("golang", "gomod")
    manifest_patterns = ("go.mod",)
    osv_ecosystem = "Go"
    max_specifier_length = MAX_GO_SPECIFIER_LENGTH

    def parse_manifest(
        self,
        content: str,
        filename: Optional[str] = None,
    ) -> Dict[str, str]:
        """Collect direct requirements from ``require`` lines and blocks.

        Indirect requirements are skipped, and modules replaced by a local
        directory are removed.
        """
        requires: Dict[str, str] = {}
        local_replacements: List[str] = []
        block: Optional[str] = None

        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("//"):
                continue

            if block is not None:
                if line.startswith(")"):
                    block = None
                    continue
                self._directive(block, raw_line, requires, local_replacements)
                continue

            keyword, _, rest = line.partition(" ")
            if keyword not in ("require", "replace"):
                continue
            rest = rest.strip()
            if rest.startswith("("):
                block = keyword
                continue
            self._directive(keyword, rest, requires, local_replacements)

        for module in local_replacements:
            if requires.pop(module, None) is not None:
                logger.debug("Dropping %s: replaced by a local path", module)
        return requires

    @staticmethod
    def _directive(
        keyword: str,
        line: str,
        requires: Dict[str, str],
        local_replacements: List[str],
    ) -> None:
        if "// indirect" in line:
            return
        text = _strip_comment(line)
        if not text:
            return

        if keyword == "require":
            match = _REQUIRE_LINE_RE.match(text)
            if match:
                requires[match.group(1)] = match.group(2)
            return

        # replace old [ver] => new [ver]
        left, arrow, right = text.partition("=>")
        if not arrow:
            return
        target = right.strip()
        if target.startswith(_LOCAL_PATH_PREFIXES):
            local_replacements.append(left.split()[0])

    def unsupported_reason(self, name: str, specifier: str) -> Optional[str]:
        if "." not in name.split("/", 1)[0]:
            return "standard library module"
        if len(name) > MAX_GO_SPECIFIER_LENGTH:
            return "module path too long"
        reason = super().unsupported_reason(name, specifier)
        if reason:
            return reason
        if is_pseudo_version(specifier):
            return "pseudo-version"
        return None

    async def fetch_versions(
        self,
        name: str,
        registry: RegistryClient,
    ) -> RegistryVersionSet:
        """List tagged versions from the module proxy.

        pkg.go.dev metadata (license, last update) is fetched best-effort;
        its failure never fails the lookup.
        """
        escaped = escape_module_path(name)
        listing = await registry.get_text(
            GO_PROXY_LIST.format(module=escaped),
            timeout=self.timeout,
        )

        versions = [
            PublishedVersion(version=version, prerelease=self.is_prerelease(version))
            for version in (line.strip() for line in listing.splitlines())
            if version and not is_pseudo_version(version)
        ]

        license_info: Optional[str] = None
        last_update: Optional[str] = None
        try:
            meta = await registry.get_json(GO_PKG_API.format(module=name), timeout=self.timeout)
        except NetworkError as exc:
            logger.debug("No pkg.go.dev metadata for %s: %s", name, exc)
        else:
            licenses = meta.get("licenses")
            if isinstance(licenses, list) and licenses:
                license_info = ", ".join(str(item) for item in licenses)
            elif isinstance(meta.get("license"), str):
                license_info = meta["license"]
            commit_time = meta.get("commitTime") or meta.get("CommitTime")
            last_update = commit_time if isinstance(commit_time, str) else None

        return RegistryVersionSet(
            name=name,
            versions=versions,
            license=license_info,
            last_update=last_update,
        )
