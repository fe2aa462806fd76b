"""Per-entity validators.

One routine per specification entity. Each enforces the entity's own
invariants, given whatever context it needs (orchestrator type, resolved
version), and raises on the first violation.
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Iterable
from urllib.parse import urlsplit

from .config import ValidatorConfig, default_config
from .errors import (
    IncompatibleCombinationError,
    MalformedValueError,
    MissingFieldError,
    UnsupportedVersionError,
)
from .models import (
    OPENSHIFT_VERSION_UNSTABLE,
    AADProfile,
    AgentPoolProfile,
    AvailabilityProfile,
    KeyVaultSecrets,
    KubernetesConfig,
    LinuxProfile,
    MasterProfile,
    NetworkPlugin,
    OrchestratorProfile,
    OrchestratorType,
    Properties,
    ServicePrincipalProfile,
    StorageProfile,
    WindowsProfile,
)
from .primitives import (
    get_vnet_subnet_id_components,
    is_uuid,
    is_valid_keyvault_id,
    parse_cidr,
    parse_duration,
    parse_ip,
    validate_dns_name,
    validate_etcd_version,
    validate_image_name_and_group,
    validate_name,
    validate_pool_name,
    validate_pool_os_type,
    validate_unique_ports,
)
from .version_compat import (
    is_backoff_supported,
    is_rate_limit_supported,
    meets_minimum,
    require_minimum,
    require_version,
    resolve_version,
)

logger = logging.getLogger(__name__)

# Kubelet and controller-manager options holding durations or CIDRs
KUBELET_NODE_STATUS_UPDATE_FREQUENCY = "--node-status-update-frequency"
KUBELET_NON_MASQUERADE_CIDR = "--non-masquerade-cidr"
CTRL_MGR_NODE_MONITOR_GRACE_PERIOD = "--node-monitor-grace-period"
CTRL_MGR_POD_EVICTION_TIMEOUT = "--pod-eviction-timeout"
CTRL_MGR_ROUTE_RECONCILIATION_PERIOD = "--route-reconciliation-period"

# Azure CNI allocates pod IPs from the cluster subnet per node
AZURE_CNI_MIN_HOST_BITS = 9


# =============================================================================
# Orchestrator Profile
# =============================================================================


def validate_orchestrator_profile(
    profile: OrchestratorProfile,
    is_update: bool = False,
    config: ValidatorConfig | None = None,
) -> None:
    """Validate orchestrator type, version and the matching config block.

    On creation every orchestrator's version must resolve and Kubernetes
    feature flags are gated on that version. On update only DC/OS and
    Kubernetes versions are checked, and an unsupported patch is accepted
    when its minor release still has a supported patch.

    Raises:
        SpecValidationError: On the first violated rule.
    """
    config = config or default_config()
    orchestrator_type = profile.orchestrator_type

    if orchestrator_type not in {t.value for t in OrchestratorType}:
        raise UnsupportedVersionError(
            f"OrchestratorProfile has unknown orchestrator: {orchestrator_type}"
        )

    if is_update:
        if orchestrator_type in (OrchestratorType.DCOS.value, OrchestratorType.KUBERNETES.value):
            require_version(profile, is_update=True)
    else:
        match OrchestratorType(orchestrator_type):
            case OrchestratorType.DCOS:
                require_version(profile)
                _validate_dcos_bootstrap(profile)
            case OrchestratorType.SWARM | OrchestratorType.SWARM_MODE:
                pass
            case OrchestratorType.KUBERNETES:
                version = require_version(profile)
                if profile.kubernetes_config is not None:
                    validate_kubernetes_config(profile.kubernetes_config, version, config)
                    _validate_kubernetes_feature_gates(
                        profile.kubernetes_config, version, profile.orchestrator_version, config
                    )
            case OrchestratorType.OPENSHIFT:
                _validate_openshift(profile)

    kubernetes_capable = (OrchestratorType.KUBERNETES.value, OrchestratorType.OPENSHIFT.value)
    if orchestrator_type not in kubernetes_capable and profile.kubernetes_config is not None:
        raise IncompatibleCombinationError(
            "KubernetesConfig can be specified only when OrchestratorType is Kubernetes "
            "or OpenShift"
        )

    is_openshift = orchestrator_type == OrchestratorType.OPENSHIFT.value
    if not is_openshift and profile.openshift_config is not None:
        raise IncompatibleCombinationError(
            "OpenShiftConfig can be specified only when OrchestratorType is OpenShift"
        )

    if (
        orchestrator_type != OrchestratorType.DCOS.value
        and profile.dcos_config is not None
        and not profile.dcos_config.is_empty()
    ):
        raise IncompatibleCombinationError(
            "DcosConfig can be specified only when OrchestratorType is DCOS"
        )


def _validate_dcos_bootstrap(profile: OrchestratorProfile) -> None:
    dcos = profile.dcos_config
    if dcos is None or dcos.bootstrap_profile is None:
        return
    static_ip = dcos.bootstrap_profile.static_ip
    if static_ip and parse_ip(static_ip) is None:
        raise MalformedValueError(
            f"DcosConfig.BootstrapProfile.StaticIP '{static_ip}' is an invalid IP address"
        )


def _validate_openshift(profile: OrchestratorProfile) -> None:
    if profile.orchestrator_version != OPENSHIFT_VERSION_UNSTABLE:
        resolved = resolve_version(
            profile.orchestrator_type,
            profile.orchestrator_release,
            profile.orchestrator_version,
        )
        if resolved is None:
            raise UnsupportedVersionError(
                "OrchestratorProfile is not able to be rationalized, "
                "check supported Release or Version"
            )
    openshift = profile.openshift_config
    if openshift is None or not openshift.cluster_username or not openshift.cluster_password:
        raise MissingFieldError("ClusterUsername and ClusterPassword must both be specified")


def _validate_kubernetes_feature_gates(
    k8s: KubernetesConfig,
    version: str,
    requested_version: str,
    config: ValidatorConfig,
) -> None:
    if k8s.enable_aggregated_apis:
        require_minimum(
            version,
            config.min_version_aggregated_apis,
            f"enableAggregatedAPIs is only available in Kubernetes version "
            f"{config.min_version_aggregated_apis} or greater; unable to validate for "
            f"Kubernetes version {version}",
        )
        if k8s.enable_rbac is False:
            raise IncompatibleCombinationError(
                "enableAggregatedAPIs requires the enableRbac feature as a prerequisite"
            )

    if k8s.enable_data_encryption_at_rest:
        require_minimum(
            version,
            config.min_version_data_encryption_at_rest,
            f"enableDataEncryptionAtRest is only available in Kubernetes version "
            f"{config.min_version_data_encryption_at_rest} or greater; unable to validate for "
            f"Kubernetes version {requested_version or version}",
        )
        if k8s.etcd_encryption_key:
            try:
                base64.b64decode(k8s.etcd_encryption_key, altchars=b"-_", validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedValueError(
                    "etcdEncryptionKey must be base64 encoded. Please provide a valid base64 "
                    "encoded value or leave the etcdEncryptionKey empty to auto-generate the value"
                ) from e

    if k8s.enable_encryption_with_external_kms:
        require_minimum(
            version,
            config.min_version_external_kms,
            f"enableEncryptionWithExternalKms is only available in Kubernetes version "
            f"{config.min_version_external_kms} or greater; unable to validate for "
            f"Kubernetes version {requested_version or version}",
        )

    if k8s.enable_pod_security_policy:
        if not k8s.enable_rbac:
            raise IncompatibleCombinationError(
                "enablePodSecurityPolicy requires the enableRbac feature as a prerequisite"
            )
        require_minimum(
            version,
            config.min_version_pod_security_policy,
            f"enablePodSecurityPolicy is only supported for Kubernetes version "
            f"{config.min_version_pod_security_policy} or greater; unable to validate for "
            f"Kubernetes version {version}",
        )


# =============================================================================
# Kubernetes Config
# =============================================================================


def _require_duration(options: dict[str, str], key: str) -> float | None:
    if key not in options:
        return None
    value = options[key]
    try:
        return parse_duration(value)
    except ValueError as e:
        raise MalformedValueError(f"{key} '{value}' is not a valid duration") from e


def validate_kubernetes_config(
    k8s: KubernetesConfig,
    k8s_version: str,
    config: ValidatorConfig | None = None,
) -> None:
    """Validate network ranges, component options and version-gated flags.

    Args:
        k8s: The Kubernetes configuration block.
        k8s_version: The resolved Kubernetes version.
        config: Validator configuration (defaults to the shared instance).

    Raises:
        SpecValidationError: On the first violated rule.
    """
    config = config or default_config()

    if k8s.cluster_subnet:
        subnet = parse_cidr(k8s.cluster_subnet)
        if subnet is None:
            raise MalformedValueError(
                f"OrchestratorProfile.KubernetesConfig.ClusterSubnet '{k8s.cluster_subnet}' "
                "is an invalid subnet"
            )
        if k8s.network_plugin == NetworkPlugin.AZURE.value:
            host_bits = subnet.max_prefixlen - subnet.prefixlen
            if host_bits < AZURE_CNI_MIN_HOST_BITS:
                raise IncompatibleCombinationError(
                    f"OrchestratorProfile.KubernetesConfig.ClusterSubnet '{k8s.cluster_subnet}' "
                    f"must reserve at least {AZURE_CNI_MIN_HOST_BITS} bits for nodes"
                )

    if k8s.docker_bridge_subnet and parse_cidr(k8s.docker_bridge_subnet) is None:
        raise MalformedValueError(
            f"OrchestratorProfile.KubernetesConfig.DockerBridgeSubnet "
            f"'{k8s.docker_bridge_subnet}' is an invalid subnet"
        )

    if k8s.max_pods != 0 and k8s.max_pods < config.min_max_pods:
        raise MalformedValueError(
            f"OrchestratorProfile.KubernetesConfig.MaxPods '{k8s.max_pods}' must be at least "
            f"{config.min_max_pods}"
        )

    status_update_frequency = _require_duration(
        k8s.kubelet_config, KUBELET_NODE_STATUS_UPDATE_FREQUENCY
    )
    grace_period = _require_duration(
        k8s.controller_manager_config, CTRL_MGR_NODE_MONITOR_GRACE_PERIOD
    )

    if status_update_frequency and grace_period is not None:
        kubelet_retries = grace_period / status_update_frequency
        if kubelet_retries < config.min_kubelet_retries:
            raise IncompatibleCombinationError(
                f"{CTRL_MGR_NODE_MONITOR_GRACE_PERIOD}({grace_period:f})s must be larger than "
                f"nodeStatusUpdateFrequency({status_update_frequency:f})s by at least a factor "
                f"of {config.min_kubelet_retries}"
            )

    non_masquerade_cidr = k8s.kubelet_config.get(KUBELET_NON_MASQUERADE_CIDR)
    if non_masquerade_cidr is not None and parse_cidr(non_masquerade_cidr) is None:
        raise MalformedValueError(
            f"{KUBELET_NON_MASQUERADE_CIDR} kubelet config '{non_masquerade_cidr}' "
            "is an invalid CIDR string"
        )

    _require_duration(k8s.controller_manager_config, CTRL_MGR_POD_EVICTION_TIMEOUT)
    _require_duration(k8s.controller_manager_config, CTRL_MGR_ROUTE_RECONCILIATION_PERIOD)

    if k8s.cloud_provider_backoff and not is_backoff_supported(k8s_version):
        raise IncompatibleCombinationError(
            f"cloudprovider backoff functionality not available in kubernetes version "
            f"{k8s_version}"
        )

    if k8s.cloud_provider_rate_limit and not is_rate_limit_supported(k8s_version):
        raise IncompatibleCombinationError(
            f"cloudprovider rate limiting functionality not available in kubernetes version "
            f"{k8s_version}"
        )

    if k8s.dns_service_ip or k8s.service_cidr:
        _validate_dns_service_ip(k8s)

    validate_etcd_version(k8s.etcd_version, config)

    if k8s.use_cloud_controller_manager or k8s.custom_ccm_image:
        if not meets_minimum(k8s_version, config.min_version_cloud_controller_manager):
            raise IncompatibleCombinationError(
                "OrchestratorProfile.KubernetesConfig.UseCloudControllerManager and "
                "OrchestratorProfile.KubernetesConfig.CustomCcmImage not available in "
                f"kubernetes version {k8s_version}"
            )


def _validate_dns_service_ip(k8s: KubernetesConfig) -> None:
    if not k8s.dns_service_ip:
        raise MissingFieldError(
            "OrchestratorProfile.KubernetesConfig.DNSServiceIP must be specified when "
            "ServiceCidr is"
        )
    if not k8s.service_cidr:
        raise MissingFieldError(
            "OrchestratorProfile.KubernetesConfig.ServiceCidr must be specified when "
            "DNSServiceIP is"
        )

    dns_ip = parse_ip(k8s.dns_service_ip)
    if dns_ip is None:
        raise MalformedValueError(
            f"OrchestratorProfile.KubernetesConfig.DNSServiceIP '{k8s.dns_service_ip}' "
            "is an invalid IP address"
        )

    service_cidr = parse_cidr(k8s.service_cidr)
    if service_cidr is None:
        raise MalformedValueError(
            f"OrchestratorProfile.KubernetesConfig.ServiceCidr '{k8s.service_cidr}' "
            "is an invalid CIDR subnet"
        )

    if dns_ip not in service_cidr:
        raise IncompatibleCombinationError(
            f"OrchestratorProfile.KubernetesConfig.DNSServiceIP '{k8s.dns_service_ip}' "
            f"is not within the ServiceCidr '{k8s.service_cidr}'"
        )

    if dns_ip == service_cidr.broadcast_address:
        raise IncompatibleCombinationError(
            f"OrchestratorProfile.KubernetesConfig.DNSServiceIP '{k8s.dns_service_ip}' "
            f"cannot be the broadcast address of ServiceCidr '{k8s.service_cidr}'"
        )

    if dns_ip == service_cidr.network_address:
        raise IncompatibleCombinationError(
            f"OrchestratorProfile.KubernetesConfig.DNSServiceIP '{k8s.dns_service_ip}' "
            f"cannot be the network address of ServiceCidr '{k8s.service_cidr}'"
        )

    # The first address is taken by the Kubernetes API service
    if dns_ip == service_cidr.network_address + 1:
        raise IncompatibleCombinationError(
            f"OrchestratorProfile.KubernetesConfig.DNSServiceIP '{k8s.dns_service_ip}' "
            f"cannot be the first IP of ServiceCidr '{k8s.service_cidr}'"
        )


# =============================================================================
# Node Profiles
# =============================================================================


def validate_master_profile(
    master: MasterProfile,
    orchestrator_profile: OrchestratorProfile,
    config: ValidatorConfig | None = None,
) -> None:
    if (
        orchestrator_profile.orchestrator_type == OrchestratorType.OPENSHIFT.value
        and master.count != 1
    ):
        raise IncompatibleCombinationError("openshift can only deployed with one master")
    if master.image_reference is not None:
        validate_image_name_and_group(
            master.image_reference.name, master.image_reference.resource_group
        )
    validate_dns_name(master.dns_prefix, config)


def validate_agent_pool_profile(
    pool: AgentPoolProfile,
    orchestrator_type: str,
    config: ValidatorConfig | None = None,
) -> None:
    """Validate one agent pool.

    When a DNS prefix is set without ports, the pool's ports are populated
    with the configured defaults. This is the only mutation the engine makes.

    Raises:
        SpecValidationError: On the first violated rule.
    """
    config = config or default_config()

    validate_pool_name(pool.name, config)
    validate_pool_os_type(pool.os_type)

    if orchestrator_type == OrchestratorType.KUBERNETES.value:
        if pool.dns_prefix:
            raise IncompatibleCombinationError(
                "AgentPoolProfile.DNSPrefix must be empty for Kubernetes"
            )
        if pool.ports:
            raise IncompatibleCombinationError(
                "AgentPoolProfile.Ports must be empty for Kubernetes"
            )

    if pool.dns_prefix:
        validate_dns_name(pool.dns_prefix, config)
        if pool.ports:
            validate_unique_ports(pool.ports, pool.name)
        else:
            pool.ports = list(config.default_agent_ports)
            logger.debug(
                "Assigned default ports to agent pool",
                extra={"agent_pool": pool.name, "ports": pool.ports},
            )
    elif pool.ports:
        raise IncompatibleCombinationError(
            "AgentPoolProfile.Ports must be empty when AgentPoolProfile.DNSPrefix is empty "
            f"for Orchestrator: {orchestrator_type}"
        )

    if pool.disk_sizes_gb:
        _validate_disk_attachment(pool)

    image = pool.image_reference
    if image is not None:
        validate_image_name_and_group(image.name, image.resource_group)


def _validate_disk_attachment(pool: AgentPoolProfile) -> None:
    storage_account = StorageProfile.STORAGE_ACCOUNT.value
    managed_disks = StorageProfile.MANAGED_DISKS.value
    scale_sets = AvailabilityProfile.VIRTUAL_MACHINE_SCALE_SETS.value
    availability_set = AvailabilityProfile.AVAILABILITY_SET.value

    if pool.storage_profile not in (storage_account, managed_disks):
        raise MissingFieldError(
            f"property 'StorageProfile' must be set to either '{storage_account}' or "
            f"'{managed_disks}' when attaching disks"
        )
    if pool.availability_profile not in (scale_sets, availability_set):
        raise MissingFieldError(
            f"property 'AvailabilityProfile' must be set to either '{scale_sets}' or "
            f"'{availability_set}' when attaching disks"
        )
    if pool.storage_profile == storage_account and pool.availability_profile == scale_sets:
        raise IncompatibleCombinationError(
            f"{scale_sets} does not support storage account attached disks.  Instead specify "
            f"'StorageAccount': '{managed_disks}' or specify AvailabilityProfile "
            f"'{availability_set}'"
        )


# =============================================================================
# OS Profiles
# =============================================================================


def validate_key_vault_secrets(
    secrets: Iterable[KeyVaultSecrets], require_certificate_store: bool
) -> None:
    for secret in secrets:
        if not secret.vault_certificates:
            raise MissingFieldError("Invalid KeyVaultSecrets must have no empty VaultCertificates")
        if secret.source_vault is None:
            raise MissingFieldError("missing SourceVault in KeyVaultSecrets")
        if not secret.source_vault.id:
            raise MissingFieldError("KeyVaultSecrets must have a SourceVault.ID")
        for certificate in secret.vault_certificates:
            try:
                urlsplit(certificate.certificate_url)
            except ValueError as e:
                raise MalformedValueError(
                    f"Certificate url was invalid. received error {e}"
                ) from e
            if require_certificate_store:
                try:
                    validate_name(
                        certificate.certificate_store, "KeyVaultCertificate.CertificateStore"
                    )
                except MissingFieldError as e:
                    raise MissingFieldError(
                        f"{e} for certificates in a WindowsProfile"
                    ) from e


def validate_linux_profile(linux: LinuxProfile) -> None:
    if not linux.ssh.public_keys or not linux.ssh.public_keys[0].key_data:
        raise MissingFieldError("KeyData in LinuxProfile.SSH.PublicKeys cannot be empty string")
    validate_key_vault_secrets(linux.secrets, require_certificate_store=False)


def validate_windows_profile(windows: WindowsProfile) -> None:
    if not windows.admin_username:
        raise MissingFieldError(
            "WindowsProfile.AdminUsername is required, when agent pool specifies windows"
        )
    if not windows.admin_password:
        raise MissingFieldError(
            "WindowsProfile.AdminPassword is required, when agent pool specifies windows"
        )
    validate_key_vault_secrets(windows.secrets, require_certificate_store=True)


# =============================================================================
# Identity Profiles
# =============================================================================


def validate_aad_profile(aad: AADProfile) -> None:
    if not is_uuid(aad.client_app_id):
        raise MalformedValueError(f"clientAppID '{aad.client_app_id}' is invalid")
    if not is_uuid(aad.server_app_id):
        raise MalformedValueError(f"serverAppID '{aad.server_app_id}' is invalid")
    if aad.tenant_id and not is_uuid(aad.tenant_id):
        raise MalformedValueError(f"tenantID '{aad.tenant_id}' is invalid")
    if aad.admin_group_id and not is_uuid(aad.admin_group_id):
        raise MalformedValueError(f"adminGroupID '{aad.admin_group_id}' is invalid")


def validate_service_principal_profile(
    service_principal: ServicePrincipalProfile | None,
    orchestrator_type: str,
    k8s: KubernetesConfig | None,
    config: ValidatorConfig | None = None,
) -> None:
    """Validate the service principal used when managed identity is off."""
    config = config or default_config()

    if service_principal is None:
        raise MissingFieldError(
            f"ServicePrincipalProfile must be specified with Orchestrator {orchestrator_type}"
        )
    if not service_principal.client_id:
        raise MissingFieldError(
            f"the service principal client ID must be specified with Orchestrator "
            f"{orchestrator_type}"
        )

    has_secret = bool(service_principal.secret)
    has_vault_ref = service_principal.keyvault_secret_ref is not None
    if has_secret == has_vault_ref:
        raise IncompatibleCombinationError(
            "either the service principal client secret or keyvault secret reference must be "
            f"specified with Orchestrator {orchestrator_type}"
        )

    uses_external_kms = k8s is not None and bool(k8s.enable_encryption_with_external_kms)
    if uses_external_kms and not service_principal.object_id:
        raise MissingFieldError(
            f"the service principal object ID must be specified with Orchestrator "
            f"{orchestrator_type} when enableEncryptionWithExternalKms is true"
        )

    vault_ref = service_principal.keyvault_secret_ref
    if vault_ref is not None:
        if not vault_ref.vault_id:
            raise MissingFieldError(
                f"the Keyvault ID must be specified for the Service Principle with "
                f"Orchestrator {orchestrator_type}"
            )
        if not vault_ref.secret_name:
            raise MissingFieldError(
                f"the Keyvault Secret must be specified for the Service Principle with "
                f"Orchestrator {orchestrator_type}"
            )
        if not is_valid_keyvault_id(vault_ref.vault_id, config):
            raise MalformedValueError(
                "service principal client keyvault secret reference is of incorrect format"
            )


# =============================================================================
# Custom VNET
# =============================================================================


def validate_vnet(properties: Properties, config: ValidatorConfig | None = None) -> None:
    """Check custom VNET subnets are used consistently by every node profile.

    Either the master and every agent pool reference a custom subnet, or none
    do. Custom subnets may differ but must live in the same VNET.
    """
    config = config or default_config()
    master = properties.master_profile
    is_custom_vnet = master.is_custom_vnet()

    for pool in properties.agent_pool_profiles:
        if pool.is_custom_vnet() != is_custom_vnet:
            raise IncompatibleCombinationError(
                "Multiple VNET Subnet configurations specified.  The master profile and each "
                "agent pool profile must all specify a custom VNET Subnet, or none at all"
            )

    if not is_custom_vnet:
        return

    subscription, resource_group, vnet_name, _ = get_vnet_subnet_id_components(
        master.vnet_subnet_id, config
    )
    for pool in properties.agent_pool_profiles:
        pool_subscription, pool_resource_group, pool_vnet_name, _ = (
            get_vnet_subnet_id_components(pool.vnet_subnet_id, config)
        )
        if (pool_subscription, pool_resource_group, pool_vnet_name) != (
            subscription,
            resource_group,
            vnet_name,
        ):
            raise IncompatibleCombinationError(
                "Multiple VNETS specified.  The master profile and each agent pool must "
                "reference the same VNET (but it is ok to reference different subnets on "
                "that VNET)"
            )

    if parse_ip(master.first_consecutive_static_ip) is None:
        raise MalformedValueError(
            "MasterProfile.FirstConsecutiveStaticIP (with VNET Subnet specification) "
            f"'{master.first_consecutive_static_ip}' is an invalid IP address"
        )

    if master.vnet_cidr and parse_cidr(master.vnet_cidr) is None:
        raise MalformedValueError(
            f"MasterProfile.VnetCidr '{master.vnet_cidr}' contains invalid cidr notation"
        )
