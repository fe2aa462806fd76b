"""Orchestrator version resolution and feature version gates.

All version comparisons go through meets_minimum() so every gate parses and
compares versions identically.
"""

from __future__ import annotations

import logging

from packaging.version import InvalidVersion, Version

from .errors import IncompatibleCombinationError, MalformedValueError, UnsupportedVersionError
from .models import OrchestratorProfile
from .versions import (
    ALL_KUBERNETES_SUPPORTED_VERSIONS,
    ALL_KUBERNETES_WINDOWS_SUPPORTED_VERSIONS,
    get_valid_patch_version,
    rationalize_release_and_version,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_VERSION_MESSAGE = (
    "the following user supplied OrchestratorProfile configuration is not supported: "
    "OrchestratorType: {orchestrator_type}, OrchestratorRelease: {release}, "
    "OrchestratorVersion: {version}. Please check supported Release or Version for this build"
)


def resolve_version(
    orchestrator_type: str,
    release: str,
    version: str,
    has_windows: bool = False,
) -> str | None:
    """Resolve a (type, release, version) triple to a canonical version.

    When release and version are both unset the orchestrator default is
    returned. Returns None when the triple is not supported.
    """
    resolved = rationalize_release_and_version(orchestrator_type, release, version, has_windows)
    return resolved or None


def unsupported_version_error(profile: OrchestratorProfile) -> UnsupportedVersionError:
    """Build the uniform diagnostic for an unresolvable orchestrator profile."""
    return UnsupportedVersionError(
        UNSUPPORTED_VERSION_MESSAGE.format(
            orchestrator_type=profile.orchestrator_type,
            release=profile.orchestrator_release,
            version=profile.orchestrator_version,
        )
    )


def require_version(
    profile: OrchestratorProfile,
    *,
    has_windows: bool = False,
    is_update: bool = False,
) -> str:
    """Resolve the profile's version or raise UnsupportedVersionError.

    On updates an unresolvable version is still accepted when its minor
    release has a supported patch; the patch version is returned instead.
    """
    resolved = resolve_version(
        profile.orchestrator_type,
        profile.orchestrator_release,
        profile.orchestrator_version,
        has_windows,
    )
    if resolved is not None:
        return resolved

    if is_update:
        patch_version = get_valid_patch_version(
            profile.orchestrator_type, profile.orchestrator_version
        )
        if patch_version:
            logger.debug(
                "Falling back to supported patch version on update",
                extra={
                    "orchestrator_version": profile.orchestrator_version,
                    "patch_version": patch_version,
                },
            )
            return patch_version

    raise unsupported_version_error(profile)


def meets_minimum(version: str, min_version: str) -> bool:
    """Return True iff ``version >= min_version``.

    Raises:
        MalformedValueError: If either side is not a valid version.
    """
    try:
        current = Version(version.removeprefix("v"))
    except InvalidVersion as e:
        raise MalformedValueError(f"could not validate version {version}") from e
    try:
        minimum = Version(min_version.removeprefix("v"))
    except InvalidVersion as e:
        raise MalformedValueError(
            f"could not apply version constraint < {min_version} against version {version}"
        ) from e
    return current >= minimum


def require_minimum(version: str, min_version: str, message: str) -> None:
    """Raise IncompatibleCombinationError with ``message`` when below ``min_version``."""
    if not meets_minimum(version, min_version):
        raise IncompatibleCombinationError(message)


def is_supported_windows_version(version: str) -> bool:
    return ALL_KUBERNETES_WINDOWS_SUPPORTED_VERSIONS.get(version, False)


def is_backoff_supported(version: str) -> bool:
    """Cloud provider backoff is available in every supported Kubernetes version."""
    return ALL_KUBERNETES_SUPPORTED_VERSIONS.get(version, False)


def is_rate_limit_supported(version: str) -> bool:
    # Currently identical to the backoff-enabled versions
    return is_backoff_supported(version)
