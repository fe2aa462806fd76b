"""Network plugin, policy and container runtime compatibility.

The allowed (plugin, policy) pairs encode product-support decisions, not a
general rule, so membership is strict equality against a fixed table.
"""

from __future__ import annotations

from .models import ContainerRuntime, NetworkPlugin, NetworkPolicy

NETWORK_PLUGIN_VALUES: frozenset[str] = frozenset(p.value for p in NetworkPlugin)
NETWORK_POLICY_VALUES: frozenset[str] = frozenset(p.value for p in NetworkPolicy)
CONTAINER_RUNTIME_VALUES: frozenset[str] = frozenset(r.value for r in ContainerRuntime)

NETWORK_PLUGIN_PLUS_POLICY_ALLOWED: frozenset[tuple[str, str]] = frozenset(
    {
        (NetworkPlugin.UNSET.value, NetworkPolicy.UNSET.value),
        (NetworkPlugin.AZURE.value, NetworkPolicy.UNSET.value),
        (NetworkPlugin.KUBENET.value, NetworkPolicy.UNSET.value),
        (NetworkPlugin.FLANNEL.value, NetworkPolicy.UNSET.value),
        (NetworkPlugin.CILIUM.value, NetworkPolicy.UNSET.value),
        (NetworkPlugin.CILIUM.value, NetworkPolicy.CILIUM.value),
        (NetworkPlugin.KUBENET.value, NetworkPolicy.CALICO.value),
        (NetworkPlugin.UNSET.value, NetworkPolicy.CALICO.value),
        (NetworkPlugin.UNSET.value, NetworkPolicy.CILIUM.value),
        # Legacy networkPolicy values from before networkPlugin existed
        (NetworkPlugin.UNSET.value, NetworkPolicy.AZURE.value),
        (NetworkPlugin.UNSET.value, NetworkPolicy.NONE.value),
    }
)

# Not yet available on Windows agent pools
WINDOWS_UNSUPPORTED_NETWORK_POLICIES: frozenset[str] = frozenset(
    {NetworkPolicy.CALICO.value, NetworkPolicy.CILIUM.value}
)
WINDOWS_UNSUPPORTED_CONTAINER_RUNTIMES: frozenset[str] = frozenset(
    {ContainerRuntime.CLEAR_CONTAINERS.value, ContainerRuntime.CONTAINERD.value}
)


def is_allowed(network_plugin: str, network_policy: str) -> bool:
    """Check whether a (plugin, policy) pair is supported."""
    return (network_plugin, network_policy) in NETWORK_PLUGIN_PLUS_POLICY_ALLOWED


def is_valid_network_plugin(network_plugin: str) -> bool:
    return network_plugin in NETWORK_PLUGIN_VALUES


def is_valid_network_policy(network_policy: str) -> bool:
    return network_policy in NETWORK_POLICY_VALUES


def is_valid_container_runtime(container_runtime: str) -> bool:
    return container_runtime in CONTAINER_RUNTIME_VALUES
