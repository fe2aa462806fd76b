"""Pytest configuration and fixtures."""

import copy
import sys
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

CLIENT_ID = "00000000-0000-0000-0000-000000000001"
SUBSCRIPTION_ID = "11111111-1111-1111-1111-111111111111"
TENANT_ID = "22222222-2222-2222-2222-222222222222"

_KUBERNETES_SPEC: dict[str, Any] = {
    "orchestratorProfile": {
        "orchestratorType": "Kubernetes",
        "orchestratorRelease": "1.10",
    },
    "masterProfile": {
        "count": 1,
        "dnsPrefix": "mycluster",
        "vmSize": "Standard_D2_v2",
    },
    "agentPoolProfiles": [
        {
            "name": "agentpool1",
            "count": 3,
            "vmSize": "Standard_D2_v2",
            "availabilityProfile": "AvailabilitySet",
        },
    ],
    "linuxProfile": {
        "adminUsername": "azureuser",
        "ssh": {"publicKeys": [{"keyData": "ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC test"}]},
    },
    "servicePrincipalProfile": {
        "clientId": CLIENT_ID,
        "secret": "s3cret",
    },
}


@pytest.fixture
def kubernetes_spec() -> dict[str, Any]:
    """A valid Kubernetes cluster definition that tests can modify."""
    return copy.deepcopy(_KUBERNETES_SPEC)


@pytest.fixture
def openshift_spec() -> dict[str, Any]:
    """A valid OpenShift cluster definition."""
    return {
        "orchestratorProfile": {
            "orchestratorType": "OpenShift",
            "orchestratorVersion": "3.9.0",
            "openShiftConfig": {"clusterUsername": "admin", "clusterPassword": "p4ssw0rd"},
        },
        "masterProfile": {
            "count": 1,
            "dnsPrefix": "openshift",
            "vmSize": "Standard_D4s_v3",
            "storageProfile": "ManagedDisks",
        },
        "agentPoolProfiles": [
            {
                "name": "infra",
                "role": "infra",
                "count": 1,
                "vmSize": "Standard_D4s_v3",
                "availabilityProfile": "AvailabilitySet",
                "storageProfile": "ManagedDisks",
            },
            {
                "name": "compute",
                "count": 2,
                "vmSize": "Standard_D4s_v3",
                "availabilityProfile": "AvailabilitySet",
                "storageProfile": "ManagedDisks",
            },
        ],
        "linuxProfile": {
            "adminUsername": "cloud-user",
            "ssh": {"publicKeys": [{"keyData": "ssh-rsa AAAA test"}]},
        },
        "azProfile": {
            "tenantId": TENANT_ID,
            "subscriptionId": SUBSCRIPTION_ID,
            "resourceGroup": "rg-openshift",
            "location": "westeurope",
        },
    }


@pytest.fixture
def dcos_spec() -> dict[str, Any]:
    """A valid DC/OS cluster definition with a public agent pool."""
    return {
        "orchestratorProfile": {"orchestratorType": "DCOS"},
        "masterProfile": {"count": 3, "dnsPrefix": "dcosmaster", "vmSize": "Standard_D2_v2"},
        "agentPoolProfiles": [
            {
                "name": "agentpublic",
                "count": 3,
                "vmSize": "Standard_D2_v2",
                "dnsPrefix": "dcosagent",
            },
        ],
        "linuxProfile": {
            "adminUsername": "azureuser",
            "ssh": {"publicKeys": [{"keyData": "ssh-rsa AAAA test"}]},
        },
    }
