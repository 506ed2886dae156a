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

"""Tests for the kind cluster lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock, call

import pytest
import sh

from capa_e2e.cluster import ClusterProvisioner
from capa_e2e.context import ClusterHandle
from capa_e2e.errors import ClusterError

KUBECONFIG = """\
apiVersion: v1
kind: Config
clusters:
- name: kind-capa-test-abc123
  cluster:
    server: https://127.0.0.1:6443
contexts:
- name: kind-capa-test-abc123
  context:
    cluster: kind-capa-test-abc123
    user: kind-capa-test-abc123
current-context: kind-capa-test-abc123
users:
- name: kind-capa-test-abc123
  user:
    token: abc
"""


def _error(stderr=b"boom"):
    return sh.ErrorReturnCode_1("kind", b"", stderr)


@pytest.fixture
def fake_sh(monkeypatch):
    fake = MagicMock()
    fake.ErrorReturnCode = sh.ErrorReturnCode

    def kind(*args):
        if args[:2] == ("get", "kubeconfig"):
            return KUBECONFIG
        return ""

    fake.kind.side_effect = kind
    monkeypatch.setattr("capa_e2e.cluster.sh", fake)
    return fake


class TestCreate:
    def test_writes_kubeconfig(self, fake_sh, tmp_path):
        handle = ClusterProvisioner(retry_wait=0).create("capa-test-abc123", tmp_path)
        assert handle == ClusterHandle("capa-test-abc123", tmp_path / "kubeconfig")
        assert handle.kubeconfig_path.read_text() == KUBECONFIG
        assert fake_sh.kind.call_args_list[:2] == [
            call("delete", "cluster", "--name", "capa-test-abc123"),
            call("create", "cluster", "--name", "capa-test-abc123", "--wait", "5m"),
        ]

    def test_node_image_passed(self, fake_sh, tmp_path):
        ClusterProvisioner(node_image="kindest/node:v1.16.2", retry_wait=0).create("c", tmp_path)
        assert call("create", "cluster", "--name", "c", "--wait", "5m", "--image", "kindest/node:v1.16.2") in (
            fake_sh.kind.call_args_list)

    def test_retries_then_fails(self, fake_sh, tmp_path):
        fake_sh.kind.side_effect = _error(b"port is already allocated")
        with pytest.raises(ClusterError, match="port is already allocated"):
            ClusterProvisioner(max_retries=2, retry_wait=0).create("c", tmp_path)
        # The delete call fails, so each attempt makes exactly one call.
        assert fake_sh.kind.call_count == 2
        assert not (tmp_path / "kubeconfig").exists()


class TestLoadImage:
    def test_skipped_without_image(self, fake_sh):
        ClusterProvisioner().load_image(ClusterHandle("c"), None)
        fake_sh.kind.assert_not_called()

    def test_loads_image(self, fake_sh):
        ClusterProvisioner().load_image(ClusterHandle("c"), "gcr.io/capa/manager:dev")
        fake_sh.kind.assert_called_once_with("load", "docker-image", "gcr.io/capa/manager:dev", "--name", "c")

    def test_failure_is_cluster_error(self, fake_sh):
        fake_sh.kind.side_effect = _error()
        with pytest.raises(ClusterError):
            ClusterProvisioner().load_image(ClusterHandle("c"), "img")


class TestRestConfig:
    def test_builds_configuration(self, tmp_path):
        path = tmp_path / "kubeconfig"
        path.write_text(KUBECONFIG)
        configuration = ClusterProvisioner().rest_config(ClusterHandle("c", path))
        assert configuration.host == "https://127.0.0.1:6443"

    def test_requires_kubeconfig(self):
        with pytest.raises(ClusterError):
            ClusterProvisioner().rest_config(ClusterHandle("c"))

    def test_unreadable_kubeconfig(self, tmp_path):
        with pytest.raises(ClusterError):
            ClusterProvisioner().rest_config(ClusterHandle("c", tmp_path / "missing"))


class TestDestroy:
    def test_none_is_noop(self, fake_sh):
        ClusterProvisioner().destroy(None)
        fake_sh.kind.assert_not_called()

    def test_deletes_cluster(self, fake_sh):
        ClusterProvisioner().destroy(ClusterHandle("c"))
        fake_sh.kind.assert_called_once_with("delete", "cluster", "--name", "c")

    def test_errors_propagate(self, fake_sh):
        fake_sh.kind.side_effect = _error()
        with pytest.raises(sh.ErrorReturnCode):
            ClusterProvisioner().destroy(ClusterHandle("c"))
