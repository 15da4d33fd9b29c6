"""
Environment variable convention used to expose declared secrets to containers.

A secret with group ``G`` and key ``K`` is exposed as ``_FSEC_G_K`` (upper-cased),
read from the pod's own cluster secret. ``FLYTE_SECRETS_ENV_PREFIX`` tells the
workload which prefix to look for.
"""

from typing import Any, Dict, List, Optional

from dapsw.annotations import MOUNT_ANY, MOUNT_ENV_VAR, SecretRequest
from dapsw.exceptions import ValidationError

K8S_DEFAULT_ENV_VAR_PREFIX = "_FSEC_"
SECRET_ENV_VAR_PREFIX = "FLYTE_SECRETS_ENV_PREFIX"
ENV_VAR_GROUP_KEY_SEPARATOR = "_"

ENV_VAR_MOUNT_REQUIREMENTS = (MOUNT_ANY, MOUNT_ENV_VAR)


def env_var_name(request: SecretRequest) -> str:
    return (
        K8S_DEFAULT_ENV_VAR_PREFIX + request.group + ENV_VAR_GROUP_KEY_SEPARATOR + request.key
    ).upper()


def create_env_var_for_secret(request: SecretRequest, secret_name: str) -> Dict[str, Any]:
    """Env var reading the secret's key from the cluster secret ``secret_name``."""
    return {
        "name": env_var_name(request),
        "valueFrom": {
            "secretKeyRef": {
                "name": secret_name,
                "key": request.key,
                "optional": True,
            }
        },
    }


def prefix_env_var() -> Dict[str, Any]:
    return {"name": SECRET_ENV_VAR_PREFIX, "value": K8S_DEFAULT_ENV_VAR_PREFIX}


def append_env_vars(
    containers: Optional[List[Dict[str, Any]]], *env_vars: Dict[str, Any]
) -> Optional[List[Dict[str, Any]]]:
    """Set each env var on every container, replacing an existing one of the same name."""
    if not containers:
        return containers

    for env_var in env_vars:
        for container in containers:
            env = container.get("env") or []
            for idx, existing in enumerate(env):
                if existing.get("name") == env_var["name"]:
                    env[idx] = dict(env_var)
                    break
            else:
                env.append(dict(env_var))
            container["env"] = env
    return containers


def validate_secret_request(request: SecretRequest):
    """Reject declarations the webhook cannot serve."""
    if not request.key:
        raise ValidationError(
            f"webhook require secretkey to be set. Secret: [{request.describe()}]"
        )
    if request.mount_requirement not in ENV_VAR_MOUNT_REQUIREMENTS:
        raise ValidationError(
            f"unrecognized mount requirement [{request.mount_requirement_name}] "
            f"for secret [{request.key}]"
        )


def inject_secret_env_var(request: SecretRequest, pod: Dict[str, Any]) -> Dict[str, Any]:
    """
    Expose one secret to every container and init container of a raw pod object.

    The env var reads from the cluster secret named after the pod.

    Args:
        request: Declared secret
        pod: Raw pod object, mutated in place

    Returns:
        The same pod object
    """
    validate_secret_request(request)

    secret_name = pod.get("metadata", {}).get("name", "")
    spec = pod.get("spec") or {}

    env_vars = (create_env_var_for_secret(request, secret_name), prefix_env_var())
    append_env_vars(spec.get("initContainers"), *env_vars)
    append_env_vars(spec.get("containers"), *env_vars)

    return pod
