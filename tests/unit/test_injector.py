# tests/unit/test_injector.py
"""
Unit tests for secret env var injection
"""

import pytest

from dapsw.annotations import MOUNT_ANY, MOUNT_ENV_VAR, MOUNT_FILE, SecretRequest
from dapsw.exceptions import ValidationError
from dapsw.injector import (
    append_env_vars,
    create_env_var_for_secret,
    env_var_name,
    inject_secret_env_var,
    prefix_env_var,
    validate_secret_request,
)
from fixtures.k8s import make_pod


@pytest.fixture
def secret_request():
    return SecretRequest(group="TestGroup", key="TestSecretKey", mount_requirement=MOUNT_ENV_VAR)


def test_env_var_name(secret_request):
    assert env_var_name(secret_request) == "_FSEC_TESTGROUP_TESTSECRETKEY"
    assert env_var_name(SecretRequest(group="", key="k")) == "_FSEC__K"


def test_create_env_var_for_secret(secret_request):
    assert create_env_var_for_secret(secret_request, "my-pod") == {
        "name": "_FSEC_TESTGROUP_TESTSECRETKEY",
        "valueFrom": {
            "secretKeyRef": {"name": "my-pod", "key": "TestSecretKey", "optional": True}
        },
    }


def test_prefix_env_var():
    assert prefix_env_var() == {"name": "FLYTE_SECRETS_ENV_PREFIX", "value": "_FSEC_"}


class TestAppendEnvVars:
    def test_no_containers(self):
        assert append_env_vars(None, prefix_env_var()) is None
        assert append_env_vars([], prefix_env_var()) == []

    def test_appends_to_every_container(self):
        containers = [{"name": "a"}, {"name": "b", "env": [{"name": "X", "value": "1"}]}]

        append_env_vars(containers, prefix_env_var())

        assert containers[0]["env"] == [prefix_env_var()]
        assert containers[1]["env"] == [{"name": "X", "value": "1"}, prefix_env_var()]

    def test_replaces_same_name_in_place(self):
        containers = [
            {
                "name": "a",
                "env": [
                    {"name": "FLYTE_SECRETS_ENV_PREFIX", "value": "OLD"},
                    {"name": "Y", "value": "2"},
                ],
            }
        ]

        append_env_vars(containers, prefix_env_var())

        assert containers[0]["env"] == [prefix_env_var(), {"name": "Y", "value": "2"}]


class TestValidateSecretRequest:
    def test_valid_mount_requirements(self):
        validate_secret_request(SecretRequest(group="g", key="k", mount_requirement=MOUNT_ANY))
        validate_secret_request(SecretRequest(group="g", key="k", mount_requirement=MOUNT_ENV_VAR))

    def test_missing_key(self):
        with pytest.raises(ValidationError, match="webhook require secretkey to be set"):
            validate_secret_request(SecretRequest(group="g", key=""))

    def test_file_mount(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_secret_request(SecretRequest(group="g", key="k", mount_requirement=MOUNT_FILE))

        assert str(exc_info.value) == "unrecognized mount requirement [FILE] for secret [k]"


class TestInjectSecretEnvVar:
    def test_injects_into_all_containers(self, secret_request):
        pod = make_pod(init_containers=True)

        inject_secret_env_var(secret_request, pod)

        expected = [create_env_var_for_secret(secret_request, "pod-with-secret"), prefix_env_var()]
        assert pod["spec"]["containers"][0]["env"] == expected
        assert pod["spec"]["initContainers"][0]["env"] == expected

    def test_injecting_twice_does_not_duplicate(self, secret_request):
        pod = make_pod()

        inject_secret_env_var(secret_request, pod)
        inject_secret_env_var(secret_request, pod)

        assert len(pod["spec"]["containers"][0]["env"]) == 2

    def test_rejects_invalid_request(self):
        pod = make_pod()

        with pytest.raises(ValidationError):
            inject_secret_env_var(SecretRequest(group="g", key=""), pod)

        assert "env" not in pod["spec"]["containers"][0]
