"""Per-field shape checks.

Presence, numeric ranges and list lengths of individual fields. These run
before any cross-field rule so the engine can assume every field has a
sensible shape.
"""

from __future__ import annotations

from collections.abc import Collection

from .errors import MalformedValueError, MissingFieldError
from .models import AgentPoolProfile, LinuxProfile, MasterProfile, Properties

VALID_MASTER_COUNTS = (1, 3, 5)
MIN_AGENT_COUNT = 1
MAX_AGENT_COUNT = 100
MAX_OS_DISK_SIZE_GB = 1023
MAX_DATA_DISKS = 4
MIN_PORT = 1
MAX_PORT = 65535


def require(value: object, path: str) -> None:
    if not value:
        raise MissingFieldError(f"missing {path}")


def require_one_of(value: int, allowed: Collection[int], path: str) -> None:
    if value not in allowed:
        raise MalformedValueError(f"{path} must be one of {list(allowed)}, got {value}")


def require_range(value: int, low: int, high: int, path: str) -> None:
    if not low <= value <= high:
        raise MalformedValueError(f"{path} must be between {low} and {high}, got {value}")


def validate_master_shape(master: MasterProfile) -> None:
    require_one_of(master.count, VALID_MASTER_COUNTS, "masterProfile.count")
    require(master.dns_prefix, "masterProfile.dnsPrefix")
    require(master.vm_size, "masterProfile.vmSize")
    require_range(master.os_disk_size_gb, 0, MAX_OS_DISK_SIZE_GB, "masterProfile.osDiskSizeGB")


def validate_agent_pool_shape(index: int, pool: AgentPoolProfile) -> None:
    path = f"agentPoolProfiles[{index}]"
    require(pool.name, f"{path}.name")
    require_range(pool.count, MIN_AGENT_COUNT, MAX_AGENT_COUNT, f"{path}.count")
    require(pool.vm_size, f"{path}.vmSize")
    require_range(pool.os_disk_size_gb, 0, MAX_OS_DISK_SIZE_GB, f"{path}.osDiskSizeGB")
    for port in pool.ports:
        require_range(port, MIN_PORT, MAX_PORT, f"{path}.ports")
    if len(pool.disk_sizes_gb) > MAX_DATA_DISKS:
        raise MalformedValueError(
            f"{path}.diskSizesGB must have at most {MAX_DATA_DISKS} entries, "
            f"got {len(pool.disk_sizes_gb)}"
        )
    for size in pool.disk_sizes_gb:
        require_range(size, 1, MAX_OS_DISK_SIZE_GB, f"{path}.diskSizesGB")


def validate_linux_shape(linux: LinuxProfile) -> None:
    require(linux.admin_username, "linuxProfile.adminUsername")
    if len(linux.ssh.public_keys) != 1:
        raise MalformedValueError(
            "linuxProfile.ssh.publicKeys must contain exactly one key, "
            f"got {len(linux.ssh.public_keys)}"
        )


def validate_shape(properties: Properties) -> None:
    """Run every per-field shape check, stopping at the first failure."""
    validate_master_shape(properties.master_profile)
    for index, pool in enumerate(properties.agent_pool_profiles):
        validate_agent_pool_shape(index, pool)
    validate_linux_shape(properties.linux_profile)
