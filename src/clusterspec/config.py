"""Validator configuration: compiled patterns, fixed tables and version gates.

Everything here is built once and never mutated afterwards, so a single
ValidatorConfig can be shared by concurrent validation calls.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from functools import lru_cache


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Input validation patterns
# Pool names make up the VM name, hence the lowercase-only 12 character cap.
POOL_NAME_PATTERN = r"^([a-z][a-z0-9]{0,11})$"
DNS_NAME_PATTERN = r"^([A-Za-z][A-Za-z0-9-]{1,43}[A-Za-z0-9])$"
LABEL_VALUE_PATTERN = r"^([A-Za-z0-9][-A-Za-z0-9_.]{0,61})?[A-Za-z0-9]$"
LABEL_KEY_PATTERN = (
    r"^(([a-zA-Z0-9-]+[.])*[a-zA-Z0-9-]+[/])?([A-Za-z0-9][-A-Za-z0-9_.]{0,61})?[A-Za-z0-9]$"
)
KEYVAULT_ID_PATTERN = (
    r"^/subscriptions/\S+/resourceGroups/\S+/providers/Microsoft.KeyVault/vaults/[^/\s]+$"
)
VNET_SUBNET_ID_PATTERN = (
    r"^/subscriptions/([^/]*)/resourceGroups/([^/]*)"
    r"/providers/Microsoft.Network/virtualNetworks/([^/]*)/subnets/([^/]*)$"
)

LABEL_KEY_PREFIX_MAX_LENGTH = 253

# Any etcd version listed here must also be mirrored for download
ETCD_VALID_VERSIONS: tuple[str, ...] = (
    "2.2.5", "2.3.0", "2.3.1", "2.3.2", "2.3.3", "2.3.4", "2.3.5", "2.3.6", "2.3.7", "2.3.8",
    "3.0.0", "3.0.1", "3.0.2", "3.0.3", "3.0.4", "3.0.5", "3.0.6", "3.0.7", "3.0.8", "3.0.9",
    "3.0.10", "3.0.11", "3.0.12", "3.0.13", "3.0.14", "3.0.15", "3.0.16", "3.0.17",
    "3.1.0", "3.1.1", "3.1.2", "3.1.3", "3.1.4", "3.1.5", "3.1.6", "3.1.7", "3.1.8", "3.1.9",
    "3.1.10",
    "3.2.0", "3.2.1", "3.2.2", "3.2.3", "3.2.4", "3.2.5", "3.2.6", "3.2.7", "3.2.8", "3.2.9",
    "3.2.11", "3.2.12", "3.2.13", "3.2.14", "3.2.15", "3.2.16",
    "3.3.0", "3.3.1",
)  # fmt: skip

# Minimum Kubernetes versions per feature gate
MIN_VERSION_AGGREGATED_APIS = "1.7.0"
MIN_VERSION_DATA_ENCRYPTION_AT_REST = "1.7.0"
MIN_VERSION_POD_SECURITY_POLICY = "1.8.0"
MIN_VERSION_EXTERNAL_KMS = "1.10.0"
MIN_VERSION_CLOUD_CONTROLLER_MANAGER = "1.8.0"
MIN_VERSION_VMSS = "1.10.0"
MIN_VERSION_VMSS_INSTANCE_METADATA = "1.10.2"

# Kubelet must be able to post node status this many times before the
# controller manager marks the node unreachable
MIN_KUBELET_RETRIES = 4
KUBERNETES_MIN_MAX_PODS = 5

DEFAULT_AGENT_PORTS: tuple[int, ...] = (80, 443, 8080)
DEFAULT_MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec document


def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


@dataclass(frozen=True)
class ValidatorConfig:
    """Immutable validation configuration.

    Holds every compiled pattern and lookup table used by the engine. All
    fields are validated at construction time; invalid configurations raise
    ConfigurationError immediately rather than failing during validation.
    """

    pool_name_pattern: re.Pattern[str] = field(
        default_factory=lambda: _compile(POOL_NAME_PATTERN)
    )
    dns_name_pattern: re.Pattern[str] = field(default_factory=lambda: _compile(DNS_NAME_PATTERN))
    label_value_pattern: re.Pattern[str] = field(
        default_factory=lambda: _compile(LABEL_VALUE_PATTERN)
    )
    label_key_pattern: re.Pattern[str] = field(
        default_factory=lambda: _compile(LABEL_KEY_PATTERN)
    )
    keyvault_id_pattern: re.Pattern[str] = field(
        default_factory=lambda: _compile(KEYVAULT_ID_PATTERN)
    )
    vnet_subnet_id_pattern: re.Pattern[str] = field(
        default_factory=lambda: _compile(VNET_SUBNET_ID_PATTERN)
    )

    etcd_versions: tuple[str, ...] = ETCD_VALID_VERSIONS

    min_version_aggregated_apis: str = MIN_VERSION_AGGREGATED_APIS
    min_version_data_encryption_at_rest: str = MIN_VERSION_DATA_ENCRYPTION_AT_REST
    min_version_pod_security_policy: str = MIN_VERSION_POD_SECURITY_POLICY
    min_version_external_kms: str = MIN_VERSION_EXTERNAL_KMS
    min_version_cloud_controller_manager: str = MIN_VERSION_CLOUD_CONTROLLER_MANAGER
    min_version_vmss: str = MIN_VERSION_VMSS
    min_version_vmss_instance_metadata: str = MIN_VERSION_VMSS_INSTANCE_METADATA

    min_kubelet_retries: int = MIN_KUBELET_RETRIES
    min_max_pods: int = KUBERNETES_MIN_MAX_PODS
    label_key_prefix_max_length: int = LABEL_KEY_PREFIX_MAX_LENGTH

    default_agent_ports: tuple[int, ...] = DEFAULT_AGENT_PORTS
    max_spec_file_size_bytes: int = DEFAULT_MAX_SPEC_FILE_SIZE_BYTES

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.default_agent_ports:
            errors.append("default agent ports must not be empty")
        for port in self.default_agent_ports:
            if not 1 <= port <= 65535:
                errors.append(f"default agent port out of range: {port}")
        if len(set(self.default_agent_ports)) != len(self.default_agent_ports):
            errors.append("default agent ports must be unique")

        if self.max_spec_file_size_bytes < 1:
            errors.append("max spec file size must be at least 1 byte")

        if self.min_kubelet_retries < 1:
            errors.append("min kubelet retries must be at least 1")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> ValidatorConfig:
        """Load overridable settings from environment variables.

        Environment Variables:
            CLUSTERSPEC_MAX_SPEC_FILE_SIZE: Max spec document size in bytes (default: 1MB)
            CLUSTERSPEC_DEFAULT_PORTS: Comma-separated ports assigned to agent pools
                that set a DNS prefix without ports (default: 80,443,8080)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_ports(key: str, default: tuple[int, ...]) -> tuple[int, ...]:
            value = os.environ.get(key, "")
            if not value:
                return default
            try:
                return tuple(int(item.strip()) for item in value.split(",") if item.strip())
            except ValueError as e:
                raise ConfigurationError(
                    f"{key} must be a comma-separated list of integers: {value}"
                ) from e

        return cls(
            default_agent_ports=get_ports("CLUSTERSPEC_DEFAULT_PORTS", DEFAULT_AGENT_PORTS),
            max_spec_file_size_bytes=get_int(
                "CLUSTERSPEC_MAX_SPEC_FILE_SIZE", DEFAULT_MAX_SPEC_FILE_SIZE_BYTES
            ),
        )


@lru_cache(maxsize=1)
def default_config() -> ValidatorConfig:
    """Return the process-wide default configuration, built on first use."""
    return ValidatorConfig()
