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

"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from capa_e2e.config import SuiteConfig, display_config, validate_config
from capa_e2e.errors import ConfigError


class TestSuiteConfig:
    def test_defaults(self):
        cfg = SuiteConfig()
        assert cfg.region is None
        assert cfg.artifacts == Path(".")
        assert cfg.log_dir == Path("logs")
        assert cfg.cluster_name_prefix == "capa-test-"
        assert cfg.deployment_timeout == 600
        assert cfg.image_to_load is None

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AWS_REGION", "eu-west-2")
        monkeypatch.setenv("ARTIFACTS", str(tmp_path))
        monkeypatch.setenv("E2E_MANAGER_IMAGE", "gcr.io/capa/manager:dev")
        monkeypatch.setenv("E2E_DEPLOYMENT_TIMEOUT", "30")
        cfg = SuiteConfig()
        assert cfg.region == "eu-west-2"
        assert cfg.log_dir == tmp_path / "logs"
        assert cfg.image_to_load == "gcr.io/capa/manager:dev"
        assert cfg.deployment_timeout == 30

    def test_image_loading_can_be_disabled(self, monkeypatch):
        monkeypatch.setenv("E2E_MANAGER_IMAGE", "gcr.io/capa/manager:dev")
        monkeypatch.setenv("E2E_LOAD_MANAGER_IMAGE", "false")
        assert SuiteConfig().image_to_load is None

    def test_invalid_prefix_rejected(self, monkeypatch):
        monkeypatch.setenv("E2E_CLUSTER_NAME_PREFIX", "Bad_Prefix")
        with pytest.raises(ValidationError):
            SuiteConfig()

    def test_model_copy_override(self):
        cfg = SuiteConfig().model_copy(update={"region": "ap-south-1"})
        assert cfg.region == "ap-south-1"


class TestValidateConfig:
    def test_region_required(self):
        with pytest.raises(ConfigError, match="AWS_REGION"):
            validate_config(SuiteConfig())

    def test_valid(self):
        validate_config(SuiteConfig(region="us-east-1"))

    def test_missing_prebuilt_components(self, tmp_path):
        cfg = SuiteConfig(region="us-east-1", capa_components=str(tmp_path / "missing.yaml"))
        with pytest.raises(ConfigError):
            validate_config(cfg)

    def test_prebuilt_components_url_accepted(self):
        validate_config(SuiteConfig(region="us-east-1", capa_components="https://example.com/c.yaml"))

    def test_prefix_too_long(self):
        with pytest.raises(ConfigError):
            validate_config(SuiteConfig(region="us-east-1", cluster_name_prefix="a" * 60))


def test_display_config_prints(capsys):
    display_config(SuiteConfig(region="us-east-1"))
    assert "us-east-1" in capsys.readouterr().err
