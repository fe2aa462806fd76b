"""Pydantic models for the cluster deployment specification.

These models provide:
1. Type-safe parsing of the JSON/YAML cluster definition
2. camelCase aliases matching the document format
3. Small helpers the validation engine relies on (custom VNET, Windows pools)

String-valued discriminants (orchestrator type, OS type, availability
profile, ...) are stored as the raw strings from the document so diagnostics
can quote user input verbatim. The closed enumerations below are what the
engine compares and dispatches against.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Enumerations
# =============================================================================


class OrchestratorType(str, Enum):
    """Supported orchestrators."""

    DCOS = "DCOS"
    SWARM = "Swarm"
    SWARM_MODE = "SwarmMode"
    KUBERNETES = "Kubernetes"
    OPENSHIFT = "OpenShift"


class OSType(str, Enum):
    """Agent pool operating systems. Empty means Linux."""

    UNSET = ""
    LINUX = "Linux"
    WINDOWS = "Windows"


class AvailabilityProfile(str, Enum):
    """VM grouping model for an agent pool."""

    UNSET = ""
    AVAILABILITY_SET = "AvailabilitySet"
    VIRTUAL_MACHINE_SCALE_SETS = "VirtualMachineScaleSets"


class StorageProfile(str, Enum):
    """Disk storage model."""

    UNSET = ""
    STORAGE_ACCOUNT = "StorageAccount"
    MANAGED_DISKS = "ManagedDisks"


class AgentPoolRole(str, Enum):
    """Agent pool roles."""

    EMPTY = ""
    INFRA = "infra"


class NetworkPlugin(str, Enum):
    """Pod connectivity plugins."""

    UNSET = ""
    AZURE = "azure"
    KUBENET = "kubenet"
    FLANNEL = "flannel"
    CILIUM = "cilium"


class NetworkPolicy(str, Enum):
    """Pod traffic policy enforcers. "azure" and "none" are legacy values."""

    UNSET = ""
    CALICO = "calico"
    CILIUM = "cilium"
    AZURE = "azure"
    NONE = "none"


class ContainerRuntime(str, Enum):
    """Container runtimes."""

    UNSET = ""
    DOCKER = "docker"
    CLEAR_CONTAINERS = "clear-containers"
    CONTAINERD = "containerd"


OPENSHIFT_VERSION_UNSTABLE = "unstable"
CLUSTER_AUTOSCALER_ADDON_NAME = "cluster-autoscaler"


class _SpecModel(BaseModel):
    """Base for all specification models."""

    model_config = {"extra": "ignore", "populate_by_name": True}


# =============================================================================
# Orchestrator
# =============================================================================


class BootstrapProfile(_SpecModel):
    """DC/OS bootstrap node configuration."""

    vm_size: str = Field("", alias="vmSize")
    os_disk_size_gb: int = Field(0, alias="osDiskSizeGB")
    oauth_enabled: bool = Field(False, alias="oauthEnabled")
    static_ip: str = Field("", alias="staticIP")
    subnet: str = ""


class DcosConfig(_SpecModel):
    """DC/OS specific configuration."""

    dcos_bootstrap_url: str = Field("", alias="dcosBootstrapURL")
    dcos_windows_bootstrap_url: str = Field("", alias="dcosWindowsBootstrapURL")
    dcos_repository_url: str = Field("", alias="dcosRepositoryURL")
    dcos_cluster_package_list_id: str = Field("", alias="dcosClusterPackageListID")
    dcos_provider_package_id: str = Field("", alias="dcosProviderPackageID")
    bootstrap_profile: BootstrapProfile | None = Field(None, alias="bootstrapProfile")

    def is_empty(self) -> bool:
        """True when no DC/OS setting has been given."""
        return not any(getattr(self, name) for name in type(self).model_fields)


class OpenShiftConfig(_SpecModel):
    """OpenShift specific configuration."""

    cluster_username: str = Field("", alias="clusterUsername")
    cluster_password: str = Field("", alias="clusterPassword")


class KubernetesAddon(_SpecModel):
    """A cluster add-on toggle."""

    name: str = ""
    enabled: bool | None = None
    config: dict[str, str] = Field(default_factory=dict)

    def is_enabled(self) -> bool:
        return bool(self.enabled)


class KubernetesConfig(_SpecModel):
    """Kubernetes specific configuration."""

    kubernetes_image_base: str = Field("", alias="kubernetesImageBase")
    cluster_subnet: str = Field("", alias="clusterSubnet")
    network_plugin: str = Field("", alias="networkPlugin")
    network_policy: str = Field("", alias="networkPolicy")
    container_runtime: str = Field("", alias="containerRuntime")
    max_pods: int = Field(0, alias="maxPods")
    docker_bridge_subnet: str = Field("", alias="dockerBridgeSubnet")
    dns_service_ip: str = Field("", alias="dnsServiceIP")
    service_cidr: str = Field("", alias="serviceCidr")
    use_managed_identity: bool = Field(False, alias="useManagedIdentity")
    use_instance_metadata: bool | None = Field(None, alias="useInstanceMetadata")
    enable_rbac: bool | None = Field(None, alias="enableRbac")
    enable_secure_kubelet: bool | None = Field(None, alias="enableSecureKubelet")
    enable_aggregated_apis: bool = Field(False, alias="enableAggregatedAPIs")
    enable_data_encryption_at_rest: bool | None = Field(None, alias="enableDataEncryptionAtRest")
    enable_encryption_with_external_kms: bool | None = Field(
        None, alias="enableEncryptionWithExternalKms"
    )
    enable_pod_security_policy: bool | None = Field(None, alias="enablePodSecurityPolicy")
    etcd_encryption_key: str = Field("", alias="etcdEncryptionKey")
    etcd_version: str = Field("", alias="etcdVersion")
    use_cloud_controller_manager: bool | None = Field(None, alias="useCloudControllerManager")
    custom_ccm_image: str = Field("", alias="customCcmImage")
    cloud_provider_backoff: bool = Field(False, alias="cloudProviderBackoff")
    cloud_provider_rate_limit: bool = Field(False, alias="cloudProviderRateLimit")
    addons: list[KubernetesAddon] = Field(default_factory=list)
    kubelet_config: dict[str, str] = Field(default_factory=dict, alias="kubeletConfig")
    controller_manager_config: dict[str, str] = Field(
        default_factory=dict, alias="controllerManagerConfig"
    )


class OrchestratorProfile(_SpecModel):
    """Orchestrator choice, version and its configuration block."""

    orchestrator_type: str = Field("", alias="orchestratorType")
    orchestrator_release: str = Field("", alias="orchestratorRelease")
    orchestrator_version: str = Field("", alias="orchestratorVersion")
    kubernetes_config: KubernetesConfig | None = Field(None, alias="kubernetesConfig")
    dcos_config: DcosConfig | None = Field(None, alias="dcosConfig")
    openshift_config: OpenShiftConfig | None = Field(None, alias="openShiftConfig")


# =============================================================================
# Node Profiles
# =============================================================================


class ImageReference(_SpecModel):
    """Custom VM image reference."""

    name: str = ""
    resource_group: str = Field("", alias="resourceGroup")


class MasterProfile(_SpecModel):
    """Master node pool."""

    count: int = 0
    dns_prefix: str = Field("", alias="dnsPrefix")
    vm_size: str = Field("", alias="vmSize")
    os_disk_size_gb: int = Field(0, alias="osDiskSizeGB")
    vnet_subnet_id: str = Field("", alias="vnetSubnetID")
    vnet_cidr: str = Field("", alias="vnetCidr")
    first_consecutive_static_ip: str = Field("", alias="firstConsecutiveStaticIP")
    storage_profile: str = Field("", alias="storageProfile")
    image_reference: ImageReference | None = Field(None, alias="imageReference")

    def is_custom_vnet(self) -> bool:
        return bool(self.vnet_subnet_id)


class AgentPoolProfile(_SpecModel):
    """Agent node pool."""

    name: str = ""
    count: int = 0
    vm_size: str = Field("", alias="vmSize")
    os_disk_size_gb: int = Field(0, alias="osDiskSizeGB")
    dns_prefix: str = Field("", alias="dnsPrefix")
    os_type: str = Field("", alias="osType")
    ports: list[int] = Field(default_factory=list)
    availability_profile: str = Field("", alias="availabilityProfile")
    storage_profile: str = Field("", alias="storageProfile")
    disk_sizes_gb: list[int] = Field(default_factory=list, alias="diskSizesGB")
    vnet_subnet_id: str = Field("", alias="vnetSubnetID")
    image_reference: ImageReference | None = Field(None, alias="imageReference")
    role: str = ""
    custom_node_labels: dict[str, str] = Field(default_factory=dict, alias="customNodeLabels")

    def is_custom_vnet(self) -> bool:
        return bool(self.vnet_subnet_id)

    def is_windows(self) -> bool:
        return self.os_type == OSType.WINDOWS.value

    def is_availability_sets(self) -> bool:
        return self.availability_profile == AvailabilityProfile.AVAILABILITY_SET.value

    def is_virtual_machine_scale_sets(self) -> bool:
        return self.availability_profile == AvailabilityProfile.VIRTUAL_MACHINE_SCALE_SETS.value


# =============================================================================
# OS and Identity Profiles
# =============================================================================


class PublicKey(_SpecModel):
    """An SSH public key granted access to the nodes."""

    key_data: str = Field("", alias="keyData")


class SshConfig(_SpecModel):
    """SSH settings for the Linux admin user."""

    public_keys: list[PublicKey] = Field(default_factory=list, alias="publicKeys")


class KeyVaultId(_SpecModel):
    """Reference to a key vault by resource ID."""

    id: str = ""


class KeyVaultCertificate(_SpecModel):
    """A key vault certificate and the store it is installed into."""

    certificate_url: str = Field("", alias="certificateUrl")
    certificate_store: str = Field("", alias="certificateStore")


class KeyVaultSecrets(_SpecModel):
    """Certificates to install from a key vault."""

    source_vault: KeyVaultId | None = Field(None, alias="sourceVault")
    vault_certificates: list[KeyVaultCertificate] = Field(
        default_factory=list, alias="vaultCertificates"
    )


class LinuxProfile(_SpecModel):
    """Linux admin access configuration."""

    admin_username: str = Field("", alias="adminUsername")
    ssh: SshConfig = Field(default_factory=SshConfig)
    secrets: list[KeyVaultSecrets] = Field(default_factory=list)


class WindowsProfile(_SpecModel):
    """Windows admin access configuration."""

    admin_username: str = Field("", alias="adminUsername")
    admin_password: str = Field("", alias="adminPassword")
    windows_image_source_url: str = Field("", alias="windowsImageSourceURL")
    secrets: list[KeyVaultSecrets] = Field(default_factory=list)


class KeyvaultSecretRef(_SpecModel):
    """Reference to a secret stored in a key vault."""

    vault_id: str = Field("", alias="vaultID")
    secret_name: str = Field("", alias="secretName")
    version: str = ""


class ServicePrincipalProfile(_SpecModel):
    """Service principal credential for cloud API access."""

    client_id: str = Field("", alias="clientId")
    secret: str = ""
    object_id: str = Field("", alias="objectId")
    keyvault_secret_ref: KeyvaultSecretRef | None = Field(None, alias="keyvaultSecretRef")


class AADProfile(_SpecModel):
    """Azure Active Directory integration."""

    client_app_id: str = Field("", alias="clientAppID")
    server_app_id: str = Field("", alias="serverAppID")
    tenant_id: str = Field("", alias="tenantID")
    admin_group_id: str = Field("", alias="adminGroupID")


class AzProfile(_SpecModel):
    """Cloud account placement, required for OpenShift."""

    tenant_id: str = Field("", alias="tenantId")
    subscription_id: str = Field("", alias="subscriptionId")
    resource_group: str = Field("", alias="resourceGroup")
    location: str = ""


class ExtensionProfile(_SpecModel):
    """A VM extension to install."""

    name: str = ""
    version: str = ""
    extension_parameters: str = Field("", alias="extensionParameters")
    extension_parameters_key_vault_ref: KeyvaultSecretRef | None = Field(
        None, alias="parametersKeyvaultSecretRef"
    )
    root_url: str = Field("", alias="rootURL")


# =============================================================================
# Root
# =============================================================================


class Properties(_SpecModel):
    """Root of the cluster deployment specification."""

    orchestrator_profile: OrchestratorProfile = Field(alias="orchestratorProfile")
    master_profile: MasterProfile = Field(alias="masterProfile")
    agent_pool_profiles: list[AgentPoolProfile] = Field(
        default_factory=list, alias="agentPoolProfiles"
    )
    linux_profile: LinuxProfile = Field(alias="linuxProfile")
    windows_profile: WindowsProfile | None = Field(None, alias="windowsProfile")
    service_principal_profile: ServicePrincipalProfile | None = Field(
        None, alias="servicePrincipalProfile"
    )
    aad_profile: AADProfile | None = Field(None, alias="aadProfile")
    az_profile: AzProfile | None = Field(None, alias="azProfile")
    extension_profiles: list[ExtensionProfile] = Field(
        default_factory=list, alias="extensionProfiles"
    )

    def has_windows(self) -> bool:
        """True when any agent pool runs Windows."""
        return any(pool.is_windows() for pool in self.agent_pool_profiles)

    def kubernetes_config(self) -> KubernetesConfig | None:
        return self.orchestrator_profile.kubernetes_config

    def summary(self) -> dict[str, Any]:
        """Short description of the specification for log records."""
        return {
            "orchestrator_type": self.orchestrator_profile.orchestrator_type,
            "orchestrator_release": self.orchestrator_profile.orchestrator_release,
            "orchestrator_version": self.orchestrator_profile.orchestrator_version,
            "agent_pools": len(self.agent_pool_profiles),
        }
