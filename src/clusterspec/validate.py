"""Top-level validation of a cluster specification.

validate_properties() runs the per-entity validators in a fixed order and
layers the cross-entity rules on top. The first failing rule raises and
aborts the pass; errors are never aggregated.
"""

from __future__ import annotations

import logging

from .config import ValidatorConfig, default_config
from .entities import (
    validate_aad_profile,
    validate_agent_pool_profile,
    validate_linux_profile,
    validate_master_profile,
    validate_orchestrator_profile,
    validate_service_principal_profile,
    validate_vnet,
    validate_windows_profile,
)
from .errors import (
    IncompatibleCombinationError,
    MalformedValueError,
    MissingFieldError,
    SpecValidationError,
    UnsupportedVersionError,
)
from .models import (
    CLUSTER_AUTOSCALER_ADDON_NAME,
    AgentPoolProfile,
    AgentPoolRole,
    AvailabilityProfile,
    OrchestratorType,
    Properties,
    StorageProfile,
)
from .network import (
    WINDOWS_UNSUPPORTED_CONTAINER_RUNTIMES,
    WINDOWS_UNSUPPORTED_NETWORK_POLICIES,
    is_allowed,
    is_valid_container_runtime,
    is_valid_network_plugin,
    is_valid_network_policy,
)
from .primitives import (
    is_valid_keyvault_id,
    validate_kubernetes_label_key,
    validate_kubernetes_label_value,
    validate_unique_profile_names,
)
from .shape import validate_shape
from .version_compat import (
    is_supported_windows_version,
    meets_minimum,
    require_version,
)

logger = logging.getLogger(__name__)

KUBERNETES = OrchestratorType.KUBERNETES.value
OPENSHIFT = OrchestratorType.OPENSHIFT.value
DCOS = OrchestratorType.DCOS.value

AVAILABILITY_SET = AvailabilityProfile.AVAILABILITY_SET.value
SCALE_SETS = AvailabilityProfile.VIRTUAL_MACHINE_SCALE_SETS.value
MANAGED_DISKS = StorageProfile.MANAGED_DISKS.value
STORAGE_ACCOUNT = StorageProfile.STORAGE_ACCOUNT.value

WINDOWS_ORCHESTRATORS = frozenset(
    {DCOS, OrchestratorType.SWARM.value, OrchestratorType.SWARM_MODE.value, KUBERNETES}
)
CUSTOM_LABEL_ORCHESTRATORS = frozenset({DCOS, KUBERNETES})
WINDOWS_CUSTOM_IMAGE_ORCHESTRATORS = frozenset({DCOS, KUBERNETES})


def validate_properties(
    properties: Properties,
    is_update: bool = False,
    config: ValidatorConfig | None = None,
) -> None:
    """Validate a cluster specification.

    Args:
        properties: The specification to validate. Agent pools that set a
            DNS prefix without ports get the default ports assigned.
        is_update: True when validating a change to an existing cluster.
        config: Validator configuration (defaults to the shared instance).

    Raises:
        SpecValidationError: The first rule the specification violates.
    """
    config = config or default_config()
    logger.debug("Validating cluster specification", extra=properties.summary())

    try:
        _validate(properties, is_update, config)
    except SpecValidationError as e:
        logger.warning(
            "Cluster specification rejected",
            extra={**properties.summary(), "error_type": type(e).__name__, "error": str(e)},
        )
        raise

    logger.info("Cluster specification is valid", extra=properties.summary())


def _validate(properties: Properties, is_update: bool, config: ValidatorConfig) -> None:
    orchestrator = properties.orchestrator_profile

    validate_shape(properties)
    validate_orchestrator_profile(orchestrator, is_update, config)
    validate_network_plugin(properties)
    validate_network_policy(properties)
    validate_network_plugin_plus_policy(properties)
    validate_container_runtime(properties)
    validate_addons(properties)
    validate_master_profile(properties.master_profile, orchestrator, config)
    validate_unique_profile_names(properties.agent_pool_profiles)

    if (
        orchestrator.orchestrator_type == OPENSHIFT
        and properties.master_profile.storage_profile != MANAGED_DISKS
    ):
        raise IncompatibleCombinationError("OpenShift orchestrator supports only ManagedDisks")

    for index, pool in enumerate(properties.agent_pool_profiles):
        _validate_agent_pool(properties, index, pool, is_update, config)

    validate_linux_profile(properties.linux_profile)
    validate_vnet(properties, config)

    if orchestrator.orchestrator_type == KUBERNETES:
        k8s = orchestrator.kubernetes_config
        if k8s is None or not k8s.use_managed_identity:
            validate_service_principal_profile(
                properties.service_principal_profile, KUBERNETES, k8s, config
            )

    _validate_aad(properties)
    _validate_az_profile(properties)
    validate_extension_profiles(properties, config)
    _validate_windows_custom_image(properties)


# =============================================================================
# Network and Runtime
# =============================================================================


def validate_network_plugin(properties: Properties) -> None:
    if properties.orchestrator_profile.orchestrator_type != KUBERNETES:
        return
    k8s = properties.kubernetes_config()
    network_plugin = k8s.network_plugin if k8s is not None else ""
    if not is_valid_network_plugin(network_plugin):
        raise MalformedValueError(f"unknown networkPlugin '{network_plugin}' specified")


def validate_network_policy(properties: Properties) -> None:
    if properties.orchestrator_profile.orchestrator_type != KUBERNETES:
        return
    k8s = properties.kubernetes_config()
    network_policy = k8s.network_policy if k8s is not None else ""
    if not is_valid_network_policy(network_policy):
        raise MalformedValueError(f"unknown networkPolicy '{network_policy}' specified")

    if network_policy in WINDOWS_UNSUPPORTED_NETWORK_POLICIES and properties.has_windows():
        raise IncompatibleCombinationError(
            f"networkPolicy '{network_policy}' is not supporting windows agents"
        )


def validate_network_plugin_plus_policy(properties: Properties) -> None:
    k8s = properties.kubernetes_config()
    network_plugin = k8s.network_plugin if k8s is not None else ""
    network_policy = k8s.network_policy if k8s is not None else ""
    if not is_allowed(network_plugin, network_policy):
        raise IncompatibleCombinationError(
            f"networkPolicy '{network_policy}' is not supported with networkPlugin "
            f"'{network_plugin}'"
        )


def validate_container_runtime(properties: Properties) -> None:
    if properties.orchestrator_profile.orchestrator_type != KUBERNETES:
        return
    k8s = properties.kubernetes_config()
    container_runtime = k8s.container_runtime if k8s is not None else ""
    if not is_valid_container_runtime(container_runtime):
        raise MalformedValueError(f'unknown containerRuntime "{container_runtime}" specified')

    if container_runtime in WINDOWS_UNSUPPORTED_CONTAINER_RUNTIMES and properties.has_windows():
        raise IncompatibleCombinationError(
            f'containerRuntime "{container_runtime}" is not supporting windows agents'
        )


def validate_addons(properties: Properties) -> None:
    """The cluster autoscaler only works with scale-set agent pools."""
    k8s = properties.kubernetes_config()
    if k8s is None or not k8s.addons:
        return

    uses_availability_sets = any(
        not pool.availability_profile or pool.is_availability_sets()
        for pool in properties.agent_pool_profiles
    )
    for addon in k8s.addons:
        if (
            addon.name == CLUSTER_AUTOSCALER_ADDON_NAME
            and addon.is_enabled()
            and uses_availability_sets
        ):
            raise IncompatibleCombinationError(
                "Cluster Autoscaler add-on can only be used with VirtualMachineScaleSets. "
                f'Please specify "availabilityProfile": "{SCALE_SETS}"'
            )


# =============================================================================
# Agent Pools
# =============================================================================


def _validate_agent_pool(
    properties: Properties,
    index: int,
    pool: AgentPoolProfile,
    is_update: bool,
    config: ValidatorConfig,
) -> None:
    orchestrator = properties.orchestrator_profile
    orchestrator_type = orchestrator.orchestrator_type

    validate_agent_pool_profile(pool, orchestrator_type, config)

    if pool.availability_profile not in {a.value for a in AvailabilityProfile}:
        raise MalformedValueError(
            f"unknown availability profile type '{pool.availability_profile}' for agent pool "
            f"'{pool.name}'.  Specify either {AVAILABILITY_SET}, or {SCALE_SETS}"
        )

    if orchestrator_type == OPENSHIFT and pool.availability_profile != AVAILABILITY_SET:
        raise IncompatibleCombinationError(
            f"Only AvailabilityProfile: {AVAILABILITY_SET} is supported for Orchestrator "
            f"'{OPENSHIFT}'"
        )

    valid_roles = {AgentPoolRole.EMPTY.value}
    if orchestrator_type == OPENSHIFT:
        valid_roles.add(AgentPoolRole.INFRA.value)
    if pool.role not in valid_roles:
        raise IncompatibleCombinationError(
            f'Role "{pool.role}" is not supported for Orchestrator {orchestrator_type}'
        )

    if orchestrator_type == OPENSHIFT and pool.storage_profile != MANAGED_DISKS:
        raise IncompatibleCombinationError("OpenShift orchestrator supports only ManagedDisks")

    if pool.custom_node_labels:
        if orchestrator_type not in CUSTOM_LABEL_ORCHESTRATORS:
            raise IncompatibleCombinationError(
                "Agent Type attributes are only supported for DCOS and Kubernetes"
            )
        if orchestrator_type == KUBERNETES:
            for key, value in pool.custom_node_labels.items():
                validate_kubernetes_label_key(key, config)
                validate_kubernetes_label_value(value, config)

    if orchestrator_type == KUBERNETES:
        _validate_kubernetes_agent_pool(properties, index, pool, is_update, config)

    if pool.is_windows():
        _validate_windows_agent_pool(properties, is_update)


def _validate_kubernetes_agent_pool(
    properties: Properties,
    index: int,
    pool: AgentPoolProfile,
    is_update: bool,
    config: ValidatorConfig,
) -> None:
    # An unset availability profile defaults to scale sets
    if not pool.availability_profile or pool.is_virtual_machine_scale_sets():
        orchestrator = properties.orchestrator_profile
        version = require_version(orchestrator, is_update=is_update)

        if not meets_minimum(version, config.min_version_vmss):
            raise IncompatibleCombinationError(
                f"VirtualMachineScaleSets are only available in Kubernetes version "
                f"{config.min_version_vmss} or greater; unable to validate for Kubernetes "
                f"version {version}"
            )

        k8s = orchestrator.kubernetes_config
        # Instance metadata is on unless explicitly turned off
        use_instance_metadata = k8s is None or k8s.use_instance_metadata is not False
        if use_instance_metadata and not meets_minimum(
            version, config.min_version_vmss_instance_metadata
        ):
            raise IncompatibleCombinationError(
                f"VirtualMachineScaleSets with instance metadata is supported for Kubernetes "
                f"version {config.min_version_vmss_instance_metadata} or greater. Please set "
                '"useInstanceMetadata": false in "kubernetesConfig"'
            )

        if pool.storage_profile == STORAGE_ACCOUNT:
            raise IncompatibleCombinationError(
                f"VirtualMachineScaleSets does not support {STORAGE_ACCOUNT} disks.  Please "
                f'specify "storageProfile": "{MANAGED_DISKS}" (recommended) or '
                f'"availabilityProfile": "{AVAILABILITY_SET}"'
            )

    if index > 0:
        first = properties.agent_pool_profiles[0]
        if pool.availability_profile != first.availability_profile:
            raise IncompatibleCombinationError(
                "mixed mode availability profiles are not allowed. Please set either "
                "VirtualMachineScaleSets or AvailabilitySet in availabilityProfile for all "
                "agent pools"
            )


def _validate_windows_agent_pool(properties: Properties, is_update: bool) -> None:
    orchestrator = properties.orchestrator_profile
    orchestrator_type = orchestrator.orchestrator_type

    if orchestrator_type not in WINDOWS_ORCHESTRATORS:
        raise IncompatibleCombinationError(
            f"Orchestrator {orchestrator_type} does not support Windows"
        )

    if orchestrator_type == KUBERNETES:
        version = require_version(
            orchestrator, has_windows=properties.has_windows(), is_update=is_update
        )
        if not is_supported_windows_version(version):
            raise UnsupportedVersionError(
                f"Orchestrator {orchestrator_type} version {version} does not support Windows"
            )

    if properties.windows_profile is None:
        raise MissingFieldError(
            "WindowsProfile is required when the cluster definition contains Windows "
            "agent pool(s)"
        )
    validate_windows_profile(properties.windows_profile)


# =============================================================================
# Identity, Account and Extensions
# =============================================================================


def _validate_aad(properties: Properties) -> None:
    if properties.aad_profile is None:
        return
    if properties.orchestrator_profile.orchestrator_type != KUBERNETES:
        raise IncompatibleCombinationError(
            f"'aadProfile' is only supported by orchestrator '{KUBERNETES}'"
        )
    validate_aad_profile(properties.aad_profile)


def _validate_az_profile(properties: Properties) -> None:
    az = properties.az_profile
    if properties.orchestrator_profile.orchestrator_type == OPENSHIFT:
        if (
            az is None
            or not az.location
            or not az.resource_group
            or not az.subscription_id
            or not az.tenant_id
        ):
            raise MissingFieldError(
                f"'azProfile' must be supplied in full for orchestrator '{OPENSHIFT}'"
            )
    elif az is not None:
        raise IncompatibleCombinationError(
            f"'azProfile' is only supported by orchestrator '{OPENSHIFT}'"
        )


def validate_extension_profiles(
    properties: Properties, config: ValidatorConfig | None = None
) -> None:
    config = config or default_config()
    for extension in properties.extension_profiles:
        vault_ref = extension.extension_parameters_key_vault_ref
        if vault_ref is None:
            continue
        if not vault_ref.vault_id:
            raise MissingFieldError(
                f"the Keyvault ID must be specified for Extension {extension.name}"
            )
        if not vault_ref.secret_name:
            raise MissingFieldError(
                f"the Keyvault Secret must be specified for Extension {extension.name}"
            )
        if not is_valid_keyvault_id(vault_ref.vault_id, config):
            raise MalformedValueError(
                f"Extension {extension.name}'s keyvault secret reference is of incorrect format"
            )


def _validate_windows_custom_image(properties: Properties) -> None:
    windows = properties.windows_profile
    if windows is None or not windows.windows_image_source_url:
        return
    if properties.orchestrator_profile.orchestrator_type not in WINDOWS_CUSTOM_IMAGE_ORCHESTRATORS:
        raise IncompatibleCombinationError(
            "Windows Custom Images are only supported if the Orchestrator Type is DCOS or "
            "Kubernetes"
        )
