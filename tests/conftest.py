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

"""Shared fixtures for the unit tests."""

from __future__ import annotations

import boto3
import pytest
from moto import mock_aws

from capa_e2e.context import AccessKey

REGION = "us-east-1"


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def aws_session(aws_credentials):
    """A boto3 session backed by moto."""
    with mock_aws():
        yield boto3.session.Session(region_name=REGION)


@pytest.fixture
def access_key():
    return AccessKey(
        user_name="bootstrapper.cluster-api-provider-aws.sigs.k8s.io",
        access_key_id="AKIA_TEST",
        secret_access_key="secret123",
    )


@pytest.fixture(autouse=True)
def _clean_suite_env(monkeypatch):
    """Keep the developer's suite settings out of the tests."""
    for name in (
        "AWS_REGION",
        "ARTIFACTS",
        "AWS_B64ENCODED_CREDENTIALS",
        "E2E_LOAD_MANAGER_IMAGE",
        "E2E_MANAGER_IMAGE",
        "E2E_CAPA_COMPONENTS",
        "E2E_KUSTOMIZE_BINARY",
        "E2E_CAPA_CONFIG_DIR",
        "E2E_CLUSTER_NAME_PREFIX",
        "E2E_CLUSTER_MAX_RETRIES",
        "E2E_DEPLOYMENT_TIMEOUT",
        "E2E_SETUP_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)
