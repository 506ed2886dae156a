# /*
# Copyright 2026 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load pinned component versions and URLs from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- AWS prerequisites --
STACK_NAME = "cluster-api-provider-aws-sigs-k8s-io"
KEY_PAIR_NAME = "cluster-api-provider-aws-sigs-k8s-io"
BOOTSTRAP_USER_NAME = "bootstrapper.cluster-api-provider-aws.sigs.k8s.io"
CONTROL_PLANE_ROLE_NAME = "control-plane.cluster-api-provider-aws.sigs.k8s.io"
NODES_ROLE_NAME = "nodes.cluster-api-provider-aws.sigs.k8s.io"
CONTROLLERS_POLICY_NAME = "controllers.cluster-api-provider-aws.sigs.k8s.io"
DEFAULT_PARTITION = "aws"
STACK_CAPABILITIES = ("CAPABILITY_IAM", "CAPABILITY_NAMED_IAM")

# -- Provider error codes --
ERR_KEY_PAIR_DUPLICATE = "InvalidKeyPair.Duplicate"
ERR_NO_SUCH_ENTITY = "NoSuchEntity"
ERR_VALIDATION = "ValidationError"
ERR_ENTITY_EXISTS = "EntityAlreadyExists"
MSG_NO_UPDATES = "No updates are to be performed"
MSG_DOES_NOT_EXIST = "does not exist"

# -- Waiters --
STACK_WAITER_DELAY_SECONDS = 10
STACK_WAITER_MAX_ATTEMPTS = 60

# -- Namespaces & deployments --
NS_CAPI = "capi-system"
NS_CAPA = "capa-system"
CAPI_DEPLOYMENT = "capi-controller-manager"
CAPA_DEPLOYMENT = "capa-controller-manager"

# -- Credentials injection --
CREDENTIALS_ENV_VAR = "AWS_B64ENCODED_CREDENTIALS"
CREDENTIALS_PROFILE_FILE = "credentials"
CREDENTIALS_PROFILE_SECTION = "default"

# -- Scratch & artifacts --
SCRATCH_DIR_PREFIX = "capa-e2e-suite"
LOGS_DIR_NAME = "logs"
KUBECONFIG_FILE = "kubeconfig"
CAPI_MANIFEST_FILE = "cluster-api-components.yaml"
CAPA_MANIFEST_FILE = "infrastructure-components.yaml"
JUNIT_FILE_TEMPLATE = "junit.e2e_suite.{node}.xml"

# -- Cluster defaults --
DEFAULT_CLUSTER_NAME_PREFIX = "capa-test-"
CLUSTER_NAME_SUFFIX_LENGTH = 6
DEFAULT_CLUSTER_CREATE_MAX_RETRIES = 2
CLUSTER_CREATE_RETRY_WAIT_SECONDS = 10
CLUSTER_WAIT = "5m"

# -- Manifests --
DEFAULT_KUSTOMIZE_BINARY = "kustomize"
DEFAULT_CAPA_CONFIG_DIR = "config/default"
KUSTOMIZE_BUILD_TIMEOUT_SECONDS = 300

# -- Timeouts --
DEFAULT_SETUP_TIMEOUT_SECONDS = 10 * 60
DEFAULT_DEPLOYMENT_TIMEOUT_SECONDS = 10 * 60
READINESS_POLL_INTERVAL_SECONDS = 5
READINESS_REQUEST_TIMEOUT_SECONDS = 10

# -- Log streaming --
LOG_STREAM_CHUNK_SIZE = 4096
