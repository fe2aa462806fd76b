"""Tests for whole-specification validation."""

import logging
from typing import Any

import pytest

from clusterspec.config import ValidatorConfig
from clusterspec.errors import (
    IncompatibleCombinationError,
    MalformedValueError,
    MissingFieldError,
    SpecValidationError,
    UnsupportedVersionError,
)
from clusterspec.models import Properties
from clusterspec.validate import validate_properties

KEYVAULT_ID = (
    "/subscriptions/sub-1/resourceGroups/rg-secrets/providers/Microsoft.KeyVault/vaults/kv1"
)
VALID_UUID = "12345678-1234-1234-1234-123456789012"
WINDOWS_PROFILE = {"adminUsername": "azureuser", "adminPassword": "P@ssw0rd1234"}


def validate(spec: dict[str, Any], is_update: bool = False) -> Properties:
    properties = Properties.model_validate(spec)
    validate_properties(properties, is_update=is_update)
    return properties


def k8s_settings(spec: dict[str, Any], **settings: Any) -> dict[str, Any]:
    spec["orchestratorProfile"].setdefault("kubernetesConfig", {}).update(settings)
    return spec


def add_windows_pool(spec: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    windows_pool = {
        "name": "winpool",
        "count": 2,
        "vmSize": "Standard_D2_v2",
        "osType": "Windows",
        "availabilityProfile": "AvailabilitySet",
    }
    windows_pool.update(overrides)
    spec["agentPoolProfiles"].append(windows_pool)
    spec["windowsProfile"] = dict(WINDOWS_PROFILE)
    return spec


def set_availability(spec: dict[str, Any], *profiles: str) -> dict[str, Any]:
    spec["agentPoolProfiles"] = [
        {
            "name": f"agentpool{index}",
            "count": 3,
            "vmSize": "Standard_D2_v2",
            "availabilityProfile": profile,
        }
        for index, profile in enumerate(profiles, start=1)
    ]
    return spec


class TestValidSpecs:
    """Tests for specifications that pass every rule."""

    def test_kubernetes(self, kubernetes_spec: dict[str, Any]) -> None:
        validate(kubernetes_spec)

    def test_openshift(self, openshift_spec: dict[str, Any]) -> None:
        validate(openshift_spec)

    def test_dcos_assigns_default_ports(self, dcos_spec: dict[str, Any]) -> None:
        properties = validate(dcos_spec)

        assert properties.agent_pool_profiles[0].ports == [80, 443, 8080]

    def test_dcos_with_configured_ports(self, dcos_spec: dict[str, Any]) -> None:
        properties = Properties.model_validate(dcos_spec)

        validate_properties(properties, config=ValidatorConfig(default_agent_ports=(8080,)))

        assert properties.agent_pool_profiles[0].ports == [8080]

    def test_swarm_mode(self, dcos_spec: dict[str, Any]) -> None:
        dcos_spec["orchestratorProfile"] = {"orchestratorType": "SwarmMode"}

        validate(dcos_spec)

    def test_idempotent(self, kubernetes_spec: dict[str, Any]) -> None:
        """Test that validating twice gives the same outcome and leaves the spec unchanged."""
        properties = Properties.model_validate(kubernetes_spec)
        before = properties.model_dump()

        validate_properties(properties)
        validate_properties(properties)

        assert properties.model_dump() == before

    def test_managed_identity_needs_no_service_principal(
        self, kubernetes_spec: dict[str, Any]
    ) -> None:
        del kubernetes_spec["servicePrincipalProfile"]
        k8s_settings(kubernetes_spec, useManagedIdentity=True)

        validate(kubernetes_spec)

    def test_full_kubernetes_config(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(
            kubernetes_spec,
            networkPlugin="azure",
            clusterSubnet="10.240.0.0/12",
            dnsServiceIP="10.0.0.10",
            serviceCidr="10.0.0.0/16",
            enableRbac=True,
            enablePodSecurityPolicy=True,
            enableAggregatedAPIs=True,
            etcdVersion="3.2.16",
            kubeletConfig={"--node-status-update-frequency": "10s"},
            controllerManagerConfig={"--node-monitor-grace-period": "40s"},
        )

        validate(kubernetes_spec)


class TestOrchestrator:
    """Tests for orchestrator type and version rules."""

    @pytest.mark.parametrize("orchestrator_type", ["Mesos", "kubernetes", ""])
    def test_unknown_orchestrator(
        self, kubernetes_spec: dict[str, Any], orchestrator_type: str
    ) -> None:
        kubernetes_spec["orchestratorProfile"]["orchestratorType"] = orchestrator_type

        with pytest.raises(UnsupportedVersionError) as exc_info:
            validate(kubernetes_spec)

        assert "unknown orchestrator" in str(exc_info.value)

    def test_unsupported_patch_rejected_on_create(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["orchestratorProfile"] = {
            "orchestratorType": "Kubernetes",
            "orchestratorVersion": "1.10.5",
        }

        with pytest.raises(UnsupportedVersionError):
            validate(kubernetes_spec)

    def test_unsupported_patch_accepted_on_update(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["orchestratorProfile"] = {
            "orchestratorType": "Kubernetes",
            "orchestratorVersion": "1.10.5",
        }

        validate(kubernetes_spec, is_update=True)

    def test_scale_sets_on_update_use_patch_version(
        self, kubernetes_spec: dict[str, Any]
    ) -> None:
        kubernetes_spec["orchestratorProfile"] = {
            "orchestratorType": "Kubernetes",
            "orchestratorVersion": "1.10.5",
        }
        set_availability(kubernetes_spec, "VirtualMachineScaleSets")

        validate(kubernetes_spec, is_update=True)


class TestNetworking:
    """Tests for network plugin, policy and runtime rules."""

    def test_unknown_network_plugin(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, networkPlugin="weave")

        with pytest.raises(MalformedValueError) as exc_info:
            validate(kubernetes_spec)

        assert "unknown networkPlugin 'weave'" in str(exc_info.value)

    def test_unknown_network_policy(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, networkPolicy="weave")

        with pytest.raises(MalformedValueError) as exc_info:
            validate(kubernetes_spec)

        assert "unknown networkPolicy 'weave'" in str(exc_info.value)

    @pytest.mark.parametrize(
        "plugin,policy", [("cilium", "cilium"), ("kubenet", "calico"), ("", "azure")]
    )
    def test_supported_plugin_and_policy(
        self, kubernetes_spec: dict[str, Any], plugin: str, policy: str
    ) -> None:
        k8s_settings(kubernetes_spec, networkPlugin=plugin, networkPolicy=policy)

        validate(kubernetes_spec)

    def test_unsupported_plugin_and_policy(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, networkPlugin="azure", networkPolicy="calico")

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "networkPolicy 'calico' is not supported with networkPlugin 'azure'" in str(
            exc_info.value
        )

    def test_windows_rejects_calico(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, networkPlugin="kubenet", networkPolicy="calico")
        add_windows_pool(kubernetes_spec)

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "not supporting windows agents" in str(exc_info.value)

    def test_unknown_container_runtime(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, containerRuntime="rkt")

        with pytest.raises(MalformedValueError):
            validate(kubernetes_spec)

    def test_windows_rejects_containerd(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, containerRuntime="containerd")
        validate(kubernetes_spec)

        add_windows_pool(kubernetes_spec)
        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert 'containerRuntime "containerd" is not supporting windows agents' in str(
            exc_info.value
        )

    def test_network_rules_skipped_for_other_orchestrators(
        self, dcos_spec: dict[str, Any]
    ) -> None:
        validate(dcos_spec)


class TestAgentPools:
    """Tests for agent pool rules that depend on the whole specification."""

    def test_invalid_pool_name(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["agentPoolProfiles"][0]["name"] = "Abc"

        with pytest.raises(MalformedValueError):
            validate(kubernetes_spec)

    def test_duplicate_pool_names(self, kubernetes_spec: dict[str, Any]) -> None:
        set_availability(kubernetes_spec, "AvailabilitySet", "AvailabilitySet")
        kubernetes_spec["agentPoolProfiles"][1]["name"] = "agentpool1"

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "already exists" in str(exc_info.value)

    def test_unknown_availability_profile(self, kubernetes_spec: dict[str, Any]) -> None:
        set_availability(kubernetes_spec, "ScaleSet")

        with pytest.raises(MalformedValueError) as exc_info:
            validate(kubernetes_spec)

        assert "unknown availability profile type 'ScaleSet'" in str(exc_info.value)

    def test_mixed_availability_profiles(self, kubernetes_spec: dict[str, Any]) -> None:
        set_availability(kubernetes_spec, "VirtualMachineScaleSets", "AvailabilitySet")

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "mixed mode availability profiles are not allowed" in str(exc_info.value)

    def test_scale_sets_require_kubernetes_1_10(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["orchestratorProfile"]["orchestratorRelease"] = "1.9"
        set_availability(kubernetes_spec, "VirtualMachineScaleSets")

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "only available in Kubernetes version 1.10.0 or greater" in str(exc_info.value)

    def test_unset_availability_is_scale_sets(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["orchestratorProfile"]["orchestratorRelease"] = "1.9"
        set_availability(kubernetes_spec, "")

        with pytest.raises(IncompatibleCombinationError):
            validate(kubernetes_spec)

    def test_scale_sets_instance_metadata(self, kubernetes_spec: dict[str, Any]) -> None:
        """Test that instance metadata on scale sets needs 1.10.2 unless turned off."""
        kubernetes_spec["orchestratorProfile"] = {
            "orchestratorType": "Kubernetes",
            "orchestratorVersion": "1.10.1",
        }
        set_availability(kubernetes_spec, "VirtualMachineScaleSets")

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert '"useInstanceMetadata": false' in str(exc_info.value)

        k8s_settings(kubernetes_spec, useInstanceMetadata=False)
        validate(kubernetes_spec)

    def test_scale_sets_reject_storage_account(self, kubernetes_spec: dict[str, Any]) -> None:
        set_availability(kubernetes_spec, "VirtualMachineScaleSets")
        kubernetes_spec["agentPoolProfiles"][0]["storageProfile"] = "StorageAccount"

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "does not support StorageAccount disks" in str(exc_info.value)

    def test_infra_role_only_for_openshift(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["agentPoolProfiles"][0]["role"] = "infra"

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert 'Role "infra" is not supported for Orchestrator Kubernetes' in str(
            exc_info.value
        )

    def test_custom_node_labels(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["agentPoolProfiles"][0]["customNodeLabels"] = {
            "example.com/team": "platform",
            "tier": "",
        }
        validate(kubernetes_spec)

        kubernetes_spec["agentPoolProfiles"][0]["customNodeLabels"] = {"-tier": "web"}
        with pytest.raises(MalformedValueError):
            validate(kubernetes_spec)

    def test_custom_node_labels_not_for_swarm(self, dcos_spec: dict[str, Any]) -> None:
        dcos_spec["orchestratorProfile"] = {"orchestratorType": "Swarm"}
        dcos_spec["agentPoolProfiles"][0]["customNodeLabels"] = {"tier": "web"}

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(dcos_spec)

        assert "only supported for DCOS and Kubernetes" in str(exc_info.value)

    def test_dcos_labels_not_checked(self, dcos_spec: dict[str, Any]) -> None:
        dcos_spec["agentPoolProfiles"][0]["customNodeLabels"] = {"-tier": "web"}

        validate(dcos_spec)

    def test_cluster_autoscaler_requires_scale_sets(
        self, kubernetes_spec: dict[str, Any]
    ) -> None:
        k8s_settings(kubernetes_spec, addons=[{"name": "cluster-autoscaler", "enabled": True}])

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "Cluster Autoscaler add-on" in str(exc_info.value)

        set_availability(kubernetes_spec, "VirtualMachineScaleSets")
        validate(kubernetes_spec)

    def test_disabled_cluster_autoscaler(self, kubernetes_spec: dict[str, Any]) -> None:
        k8s_settings(kubernetes_spec, addons=[{"name": "cluster-autoscaler", "enabled": False}])

        validate(kubernetes_spec)


class TestWindows:
    """Tests for Windows agent pools."""

    def test_windows_pool(self, kubernetes_spec: dict[str, Any]) -> None:
        validate(add_windows_pool(kubernetes_spec))

    def test_windows_profile_required(self, kubernetes_spec: dict[str, Any]) -> None:
        add_windows_pool(kubernetes_spec)
        del kubernetes_spec["windowsProfile"]

        with pytest.raises(MissingFieldError) as exc_info:
            validate(kubernetes_spec)

        assert "WindowsProfile is required" in str(exc_info.value)

    def test_windows_profile_credentials(self, kubernetes_spec: dict[str, Any]) -> None:
        add_windows_pool(kubernetes_spec)
        kubernetes_spec["windowsProfile"]["adminPassword"] = ""

        with pytest.raises(MissingFieldError):
            validate(kubernetes_spec)

    def test_windows_unsupported_version(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["orchestratorProfile"] = {
            "orchestratorType": "Kubernetes",
            "orchestratorVersion": "1.11.0-beta.1",
        }
        add_windows_pool(kubernetes_spec)

        with pytest.raises(UnsupportedVersionError):
            validate(kubernetes_spec)

    def test_windows_not_supported_by_openshift(self, openshift_spec: dict[str, Any]) -> None:
        openshift_spec["agentPoolProfiles"][1]["osType"] = "Windows"
        openshift_spec["windowsProfile"] = dict(WINDOWS_PROFILE)

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(openshift_spec)

        assert "Orchestrator OpenShift does not support Windows" in str(exc_info.value)

    def test_windows_custom_image(self, dcos_spec: dict[str, Any]) -> None:
        dcos_spec["windowsProfile"] = {
            **WINDOWS_PROFILE,
            "windowsImageSourceURL": "https://images.example.com/windows.vhd",
        }
        validate(dcos_spec)

        dcos_spec["orchestratorProfile"] = {"orchestratorType": "Swarm"}
        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(dcos_spec)

        assert "Windows Custom Images are only supported" in str(exc_info.value)


class TestOpenShift:
    """Tests for OpenShift specific rules."""

    def test_master_requires_managed_disks(self, openshift_spec: dict[str, Any]) -> None:
        openshift_spec["masterProfile"]["storageProfile"] = "StorageAccount"

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(openshift_spec)

        assert "supports only ManagedDisks" in str(exc_info.value)

    def test_pool_requires_managed_disks(self, openshift_spec: dict[str, Any]) -> None:
        openshift_spec["agentPoolProfiles"][1]["storageProfile"] = ""

        with pytest.raises(IncompatibleCombinationError):
            validate(openshift_spec)

    def test_pool_requires_availability_set(self, openshift_spec: dict[str, Any]) -> None:
        openshift_spec["agentPoolProfiles"][1]["availabilityProfile"] = "VirtualMachineScaleSets"

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(openshift_spec)

        assert "Only AvailabilityProfile: AvailabilitySet" in str(exc_info.value)

    @pytest.mark.parametrize("field", ["location", "resourceGroup", "subscriptionId", "tenantId"])
    def test_az_profile_required(self, openshift_spec: dict[str, Any], field: str) -> None:
        openshift_spec["azProfile"][field] = ""

        with pytest.raises(MissingFieldError) as exc_info:
            validate(openshift_spec)

        assert "'azProfile' must be supplied in full" in str(exc_info.value)

    def test_az_profile_only_for_openshift(
        self, kubernetes_spec: dict[str, Any], openshift_spec: dict[str, Any]
    ) -> None:
        kubernetes_spec["azProfile"] = openshift_spec["azProfile"]

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(kubernetes_spec)

        assert "'azProfile' is only supported by orchestrator 'OpenShift'" in str(
            exc_info.value
        )


class TestIdentity:
    """Tests for service principal, AAD and extension rules."""

    def test_service_principal_required(self, kubernetes_spec: dict[str, Any]) -> None:
        del kubernetes_spec["servicePrincipalProfile"]

        with pytest.raises(MissingFieldError):
            validate(kubernetes_spec)

    def test_aad_profile(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["aadProfile"] = {"clientAppID": VALID_UUID, "serverAppID": VALID_UUID}
        validate(kubernetes_spec)

        kubernetes_spec["aadProfile"]["serverAppID"] = "server"
        with pytest.raises(MalformedValueError):
            validate(kubernetes_spec)

    def test_aad_profile_only_for_kubernetes(self, dcos_spec: dict[str, Any]) -> None:
        dcos_spec["aadProfile"] = {"clientAppID": VALID_UUID, "serverAppID": VALID_UUID}

        with pytest.raises(IncompatibleCombinationError) as exc_info:
            validate(dcos_spec)

        assert "'aadProfile' is only supported by orchestrator 'Kubernetes'" in str(
            exc_info.value
        )

    def test_extension_vault_reference(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["extensionProfiles"] = [
            {
                "name": "hello-world",
                "version": "v1",
                "parametersKeyvaultSecretRef": {"vaultID": KEYVAULT_ID, "secretName": "params"},
            }
        ]
        validate(kubernetes_spec)

        kubernetes_spec["extensionProfiles"][0]["parametersKeyvaultSecretRef"]["vaultID"] = "kv1"
        with pytest.raises(MalformedValueError) as exc_info:
            validate(kubernetes_spec)

        assert "Extension hello-world's keyvault secret reference" in str(exc_info.value)

    def test_extension_vault_reference_secret_name(self, kubernetes_spec: dict[str, Any]) -> None:
        kubernetes_spec["extensionProfiles"] = [
            {"name": "hello-world", "parametersKeyvaultSecretRef": {"vaultID": KEYVAULT_ID}}
        ]

        with pytest.raises(MissingFieldError):
            validate(kubernetes_spec)


class TestLogging:
    """Tests for validation log records."""

    def test_success_logged(
        self, kubernetes_spec: dict[str, Any], caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.INFO, logger="clusterspec.validate"):
            validate(kubernetes_spec)

        record = caplog.records[-1]
        assert record.getMessage() == "Cluster specification is valid"
        assert record.orchestrator_type == "Kubernetes"  # type: ignore[attr-defined]

    def test_rejection_logged(
        self, kubernetes_spec: dict[str, Any], caplog: pytest.LogCaptureFixture
    ) -> None:
        kubernetes_spec["agentPoolProfiles"][0]["name"] = "Abc"

        with caplog.at_level(logging.WARNING, logger="clusterspec.validate"):
            with pytest.raises(SpecValidationError):
                validate(kubernetes_spec)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.error_type == "MalformedValueError"  # type: ignore[attr-defined]
        assert "pool name 'Abc' is invalid" in record.error  # type: ignore[attr-defined]
