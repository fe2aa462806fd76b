"""Primitive validators for isolated syntactic shapes.

Each function checks a single value (or a flat list of values) and raises a
SpecValidationError subclass on failure. Patterns come from the immutable
ValidatorConfig so they are compiled exactly once.
"""

from __future__ import annotations

import ipaddress
import re
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from .config import ValidatorConfig, default_config
from .errors import IncompatibleCombinationError, MalformedValueError, MissingFieldError
from .models import OSType

if TYPE_CHECKING:
    from .models import AgentPoolProfile

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network

# Go-style durations: "300ms", "1.5h", "2h45m", "-1m"
_DURATION_UNITS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
# Durations are bounded by a signed 64-bit nanosecond count
_MAX_DURATION_NS = 2**63 - 1
_DURATION_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_ip(value: str) -> IPAddress | None:
    """Parse an IPv4 or IPv6 address, returning None when invalid."""
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def parse_cidr(value: str) -> IPNetwork | None:
    """Parse CIDR notation, returning None when invalid.

    Host bits may be set ("10.0.0.5/24" is the 10.0.0.0/24 network).
    """
    if "/" not in value:
        return None
    try:
        return ipaddress.ip_network(value, strict=False)
    except ValueError:
        return None


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Raises:
        ValueError: If the string is not a valid duration or does not fit in
            a signed 64-bit nanosecond count.
    """
    text = value
    sign = 1
    if text[:1] in ("-", "+"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return 0.0
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    total_ns = 0
    pos = 0
    while pos < len(text):
        match = _DURATION_COMPONENT.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        number, unit = match.groups()
        scale = _DURATION_UNITS[unit]
        whole, _, fraction = number.partition(".")
        total_ns += int(whole or "0") * scale
        if fraction:
            total_ns += int(fraction) * scale // 10 ** len(fraction)
        if total_ns > _MAX_DURATION_NS:
            raise ValueError(f"invalid duration {value!r}: out of range")
        pos = match.end()
    return sign * total_ns / 1_000_000_000


def is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def validate_name(name: str, label: str) -> None:
    if not name:
        raise MissingFieldError(f"{label} must be a non-empty value")


def validate_pool_name(pool_name: str, config: ValidatorConfig | None = None) -> None:
    config = config or default_config()
    if not config.pool_name_pattern.fullmatch(pool_name):
        raise MalformedValueError(
            f"pool name '{pool_name}' is invalid. A pool name must start with a lowercase "
            "letter, have max length of 12, and only have characters a-z0-9"
        )


def validate_pool_os_type(os_type: str) -> None:
    if os_type not in {member.value for member in OSType}:
        raise MalformedValueError("AgentPoolProfile.osType must be either Linux or Windows")


def validate_dns_name(dns_name: str, config: ValidatorConfig | None = None) -> None:
    config = config or default_config()
    if not config.dns_name_pattern.fullmatch(dns_name):
        raise MalformedValueError(
            f"DNS name '{dns_name}' is invalid. The DNS name must contain between 3 and 45 "
            "characters.  The name can contain only letters, numbers, and hyphens.  The name "
            "must start with a letter and must end with a letter or a number "
            f"(length was {len(dns_name)})"
        )


def validate_unique_profile_names(profiles: Iterable[AgentPoolProfile]) -> None:
    seen: set[str] = set()
    for profile in profiles:
        if profile.name in seen:
            raise IncompatibleCombinationError(
                f"profile name '{profile.name}' already exists, profile names must be "
                "unique across pools"
            )
        seen.add(profile.name)


def validate_unique_ports(ports: Iterable[int], name: str) -> None:
    seen: set[int] = set()
    for port in ports:
        if port in seen:
            raise MalformedValueError(
                f"agent profile '{name}' has duplicate port '{port}', ports must be unique"
            )
        seen.add(port)


def validate_kubernetes_label_value(value: str, config: ValidatorConfig | None = None) -> None:
    config = config or default_config()
    if value and not config.label_value_pattern.fullmatch(value):
        raise MalformedValueError(
            f"Label value '{value}' is invalid. Valid label values must be 63 characters or "
            "less and must be empty or begin and end with an alphanumeric character "
            "([a-z0-9A-Z]) with dashes (-), underscores (_), dots (.), and alphanumerics between"
        )


def validate_kubernetes_label_key(key: str, config: ValidatorConfig | None = None) -> None:
    config = config or default_config()
    if not config.label_key_pattern.fullmatch(key):
        raise MalformedValueError(
            f"Label key '{key}' is invalid. Valid label keys have two segments: an optional "
            "prefix and name, separated by a slash (/). The name segment is required and must "
            "be 63 characters or less, beginning and ending with an alphanumeric character "
            "([a-z0-9A-Z]) with dashes (-), underscores (_), dots (.), and alphanumerics "
            "between. The prefix is optional. If specified, the prefix must be a DNS subdomain: "
            "a series of DNS labels separated by dots (.), not longer than 253 characters in "
            "total, followed by a slash (/)"
        )
    prefix, sep, _ = key.partition("/")
    if sep and len(prefix) > config.label_key_prefix_max_length:
        raise MalformedValueError(
            f"Label key prefix '{key}' is invalid. If specified, the prefix must be no longer "
            f"than {config.label_key_prefix_max_length} characters in total"
        )


def validate_etcd_version(etcd_version: str, config: ValidatorConfig | None = None) -> None:
    # "" maps to the default etcd version
    config = config or default_config()
    if etcd_version and etcd_version not in config.etcd_versions:
        raise MalformedValueError(
            f"Invalid etcd version({etcd_version}), valid versions are "
            f"[{' '.join(config.etcd_versions)}]"
        )


def validate_image_name_and_group(name: str, resource_group: str) -> None:
    if not name and resource_group:
        raise MissingFieldError(
            "imageName needs to be specified when imageResourceGroup is provided"
        )
    if name and not resource_group:
        raise MissingFieldError(
            "imageResourceGroup needs to be specified when imageName is provided"
        )


def is_valid_keyvault_id(vault_id: str, config: ValidatorConfig | None = None) -> bool:
    config = config or default_config()
    return config.keyvault_id_pattern.fullmatch(vault_id) is not None


def get_vnet_subnet_id_components(
    vnet_subnet_id: str, config: ValidatorConfig | None = None
) -> tuple[str, str, str, str]:
    """Split a subnet resource ID into (subscription, resource group, vnet, subnet).

    Raises:
        MalformedValueError: If the ID does not match the subnet resource path.
    """
    config = config or default_config()
    match = config.vnet_subnet_id_pattern.fullmatch(vnet_subnet_id)
    if match is None:
        raise MalformedValueError(
            f"vnetSubnetID '{vnet_subnet_id}' is invalid. Expected "
            "/subscriptions/<id>/resourceGroups/<name>/providers/Microsoft.Network/"
            "virtualNetworks/<name>/subnets/<name>"
        )
    subscription, resource_group, vnet_name, subnet_name = match.groups()
    return subscription, resource_group, vnet_name, subnet_name
