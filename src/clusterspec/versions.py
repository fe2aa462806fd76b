"""Supported orchestrator versions and release/version rationalization.

Each orchestrator has a table of known versions. A version mapped to True is
offered for new deployments; False marks versions that are still recognised
(e.g. for upgrades) but no longer offered. The default version is used when
neither a release nor a version is requested.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from packaging.version import InvalidVersion, Version

from .models import OrchestratorType

logger = logging.getLogger(__name__)


def _versions(supported: Sequence[str], deprecated: Sequence[str] = ()) -> Mapping[str, bool]:
    table = {v: False for v in deprecated}
    table.update({v: True for v in supported})
    return MappingProxyType(table)


ALL_KUBERNETES_SUPPORTED_VERSIONS: Mapping[str, bool] = _versions(
    supported=[
        "1.7.0", "1.7.1", "1.7.2", "1.7.4", "1.7.5", "1.7.7", "1.7.9", "1.7.10", "1.7.12",
        "1.7.13", "1.7.14", "1.7.15", "1.7.16",
        "1.8.0", "1.8.1", "1.8.2", "1.8.4", "1.8.6", "1.8.7", "1.8.8", "1.8.9", "1.8.10",
        "1.8.11", "1.8.12", "1.8.13",
        "1.9.0", "1.9.1", "1.9.2", "1.9.3", "1.9.4", "1.9.5", "1.9.6", "1.9.7", "1.9.8",
        "1.10.0", "1.10.1", "1.10.2", "1.10.3", "1.10.4",
        "1.11.0-beta.1",
    ],
    deprecated=["1.6.6", "1.6.9", "1.6.11", "1.6.12", "1.6.13"],
)  # fmt: skip

DEFAULT_KUBERNETES_VERSION = "1.9.8"

# Windows node support starts with 1.7; the 1.11 preview is Linux only
ALL_KUBERNETES_WINDOWS_SUPPORTED_VERSIONS: Mapping[str, bool] = MappingProxyType(
    {
        version: supported
        and Version(version) >= Version("1.7.0")
        and not Version(version).is_prerelease
        for version, supported in ALL_KUBERNETES_SUPPORTED_VERSIONS.items()
    }
)

DEFAULT_KUBERNETES_VERSION_WINDOWS = "1.9.8"

ALL_DCOS_SUPPORTED_VERSIONS: Mapping[str, bool] = _versions(
    supported=["1.9.0", "1.9.8", "1.10.0", "1.11.0"],
    deprecated=["1.8.8"],
)
DEFAULT_DCOS_VERSION = "1.11.0"

ALL_OPENSHIFT_SUPPORTED_VERSIONS: Mapping[str, bool] = _versions(supported=["3.9.0"])
DEFAULT_OPENSHIFT_VERSION = "3.9.0"

ALL_SWARM_SUPPORTED_VERSIONS: Mapping[str, bool] = _versions(supported=["1.1.0"])
DEFAULT_SWARM_VERSION = "1.1.0"

ALL_DOCKER_CE_SUPPORTED_VERSIONS: Mapping[str, bool] = _versions(supported=["17.03.0"])
DEFAULT_DOCKER_CE_VERSION = "17.03.0"


def _version_table(
    orchestrator_type: str, has_windows: bool
) -> tuple[Mapping[str, bool], str] | None:
    if orchestrator_type == OrchestratorType.KUBERNETES.value:
        if has_windows:
            return ALL_KUBERNETES_WINDOWS_SUPPORTED_VERSIONS, DEFAULT_KUBERNETES_VERSION_WINDOWS
        return ALL_KUBERNETES_SUPPORTED_VERSIONS, DEFAULT_KUBERNETES_VERSION
    if orchestrator_type == OrchestratorType.DCOS.value:
        return ALL_DCOS_SUPPORTED_VERSIONS, DEFAULT_DCOS_VERSION
    if orchestrator_type == OrchestratorType.OPENSHIFT.value:
        return ALL_OPENSHIFT_SUPPORTED_VERSIONS, DEFAULT_OPENSHIFT_VERSION
    if orchestrator_type == OrchestratorType.SWARM.value:
        return ALL_SWARM_SUPPORTED_VERSIONS, DEFAULT_SWARM_VERSION
    if orchestrator_type == OrchestratorType.SWARM_MODE.value:
        return ALL_DOCKER_CE_SUPPORTED_VERSIONS, DEFAULT_DOCKER_CE_VERSION
    return None


def get_supported_versions(orchestrator_type: str, has_windows: bool = False) -> list[str]:
    """Versions currently offered for new deployments, oldest first."""
    table = _version_table(orchestrator_type, has_windows)
    if table is None:
        return []
    versions, _ = table
    return sorted((v for v, ok in versions.items() if ok), key=Version)


def get_all_versions(orchestrator_type: str, has_windows: bool = False) -> list[str]:
    """All recognised versions, including deprecated ones, oldest first."""
    table = _version_table(orchestrator_type, has_windows)
    if table is None:
        return []
    versions, _ = table
    return sorted(versions, key=Version)


def get_default_version(orchestrator_type: str, has_windows: bool = False) -> str:
    table = _version_table(orchestrator_type, has_windows)
    if table is None:
        return ""
    return table[1]


def get_latest_patch_version(release: str, versions: list[str]) -> str:
    """Return the highest version in ``versions`` belonging to ``release`` ("1.9").

    Returns an empty string when no version matches.
    """
    latest: Version | None = None
    result = ""
    for candidate in versions:
        try:
            parsed = Version(candidate)
        except InvalidVersion:
            continue
        if f"{parsed.major}.{parsed.minor}" != release:
            continue
        if latest is None or parsed > latest:
            latest = parsed
            result = candidate
    return result


def rationalize_release_and_version(
    orchestrator_type: str,
    release: str,
    version: str,
    has_windows: bool = False,
) -> str:
    """Reconcile a requested release and/or version into one supported version.

    A leading "v" is ignored on both inputs. With neither set, the default
    version for the orchestrator is returned. Returns an empty string when the
    combination is not supported.
    """
    version = version.removeprefix("v")
    release = release.removeprefix("v")

    if _version_table(orchestrator_type, has_windows) is None:
        return ""
    supported = get_supported_versions(orchestrator_type, has_windows)

    if not release and not version:
        return get_default_version(orchestrator_type, has_windows)

    if not version:
        return get_latest_patch_version(release, supported)

    if not release:
        if version in supported:
            return version
        if version in get_all_versions(orchestrator_type, has_windows):
            logger.debug(
                "Requested version is deprecated",
                extra={"orchestrator_type": orchestrator_type, "version": version},
            )
        return ""

    # Both given: the version must belong to the release
    if version in supported:
        try:
            parsed = Version(version)
        except InvalidVersion:
            return ""
        if f"{parsed.major}.{parsed.minor}" == release:
            return version
    logger.debug(
        "Release and version disagree",
        extra={"orchestrator_type": orchestrator_type, "release": release, "version": version},
    )
    return ""


def get_valid_patch_version(orchestrator_type: str, version: str) -> str:
    """Return the latest supported patch of the minor release ``version`` belongs to.

    Used on updates, where an older patch is acceptable as long as its minor
    release is still supported.
    """
    if not version:
        return rationalize_release_and_version(orchestrator_type, "", "", False)
    try:
        parsed = Version(version.removeprefix("v"))
    except InvalidVersion:
        return ""
    release = f"{parsed.major}.{parsed.minor}"
    return rationalize_release_and_version(orchestrator_type, release, "", False)
