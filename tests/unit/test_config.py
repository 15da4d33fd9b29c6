# tests/unit/test_config.py
"""
Unit tests for Pydantic configuration
"""

import json
import os

import pytest
from pydantic import ValidationError

from dapsw.config import WebhookConfig


class TestWebhookConfig:
    """Test WebhookConfig loading from env, kwargs and config file."""

    def setup_method(self):
        """Clear environment before each test."""
        env_vars = [
            "WEBHOOK_BIND_ADDRESS",
            "WEBHOOK_SERVICE_PORT",
            "WEBHOOK_MUTATE_PATH",
            "TLS_SERVER_CERT_FILE",
            "TLS_SERVER_KEY_FILE",
            "MLP_TIMEOUT",
            "PROMETHEUS_ENABLED",
            "CONFIG_FILE",
        ]
        for var in env_vars:
            os.environ.pop(var, None)

    def test_default_config(self):
        """Test default configuration values."""
        config = WebhookConfig()

        assert config.bind_address == "0.0.0.0"
        assert config.port == 443
        assert config.mlp_api_host == "http://mlp.test/v1"
        assert config.mlp_timeout == 30.0
        assert config.k8s_timeout == 30.0
        assert config.mutate_path == "/mutate"
        assert config.metrics_enabled is True
        assert config.in_cluster is False
        assert config.debug is False

    def test_env_vars(self):
        os.environ["WEBHOOK_SERVICE_PORT"] = "8443"
        os.environ["WEBHOOK_MUTATE_PATH"] = "/secrets"
        os.environ["MLP_TIMEOUT"] = "5"

        config = WebhookConfig()

        assert config.port == 8443
        assert config.mutate_path == "/secrets"
        assert config.mlp_timeout == 5.0

    def test_mlp_host_trailing_slash(self):
        config = WebhookConfig(mlp_api_host="http://mlp.example.com/v1/")

        assert config.mlp_api_host == "http://mlp.example.com/v1"

    def test_mlp_host_required(self, monkeypatch):
        monkeypatch.delenv("MLP_API_HOST")

        with pytest.raises(ValidationError):
            WebhookConfig()

    def test_invalid_port(self):
        with pytest.raises(ValidationError):
            WebhookConfig(port=70000)

    def test_invalid_mutate_path(self):
        with pytest.raises(ValidationError, match="must start with '/'"):
            WebhookConfig(mutate_path="mutate")

    def test_missing_tls_file(self, tmp_path):
        with pytest.raises(ValidationError, match="Path does not exist"):
            WebhookConfig(tls_cert_path=tmp_path / "missing.crt")

    def test_config_file(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({"port": 9443, "mutate_path": "/from-file"}))

        config = WebhookConfig(config_file=str(config_file), mutate_path="/from-kwargs")

        assert config.port == 9443
        assert config.mutate_path == "/from-kwargs"

    def test_export(self):
        config = WebhookConfig(port=9443)

        assert json.loads(config.export_json())["port"] == 9443
        assert config.export_dict()["mlp_api_host"] == "http://mlp.test/v1"
