"""
Cluster secrets through the Kubernetes API.
"""

import asyncio
import base64
import os
from typing import Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from loguru import logger
from urllib3.exceptions import HTTPError

from dapsw.exceptions import StoreError
from dapsw.providers.base import ClusterSecretStore
from dapsw.responses import ClusterSecret


def load_core_v1_api(in_cluster: bool, kubeconfig: Optional[str] = None) -> client.CoreV1Api:
    """Build a CoreV1Api from in-cluster credentials or a kubeconfig file."""
    try:
        if in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes configuration")
        else:
            kubeconfig = kubeconfig or os.getenv("KUBECONFIG") or None
            config.load_kube_config(config_file=kubeconfig)
            logger.info("Loaded local Kubernetes configuration")
    except ConfigException as e:
        raise RuntimeError(f"failed to create client: {e}") from e
    return client.CoreV1Api()


class KubernetesSecretStore(ClusterSecretStore):
    """Idempotent create and delete of namespaced secrets."""

    def __init__(self, core_v1_api: client.CoreV1Api, timeout: float = 30.0):
        self.v1 = core_v1_api
        self.timeout = timeout

    async def _call(self, func, *args, **kwargs):
        """Run a blocking client call in a worker thread, bounded by the timeout."""
        kwargs["_request_timeout"] = self.timeout
        return await asyncio.wait_for(
            asyncio.to_thread(func, *args, **kwargs), timeout=self.timeout
        )

    async def _exists(self, namespace: str, name: str) -> bool:
        try:
            await self._call(self.v1.read_namespaced_secret, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return False
            raise
        return True

    async def ensure_secret(self, secret: ClusterSecret):
        """Create the secret unless one with the same name already exists."""
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=secret.name, namespace=secret.namespace),
            type=secret.type,
            data={
                key: base64.b64encode(value).decode("utf-8") for key, value in secret.data.items()
            },
        )

        try:
            if await self._exists(secret.namespace, secret.name):
                logger.debug(
                    "Secret '{}' already exists in namespace '{}'", secret.name, secret.namespace
                )
                return
            await self._call(
                self.v1.create_namespaced_secret, namespace=secret.namespace, body=body
            )
        except ApiException as e:
            if e.status == 409:
                logger.warning(
                    "Secret '{}' already exists in namespace '{}'", secret.name, secret.namespace
                )
                return
            raise StoreError(f"failed to create mlpSecret: {e.status} {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"timed out creating secret '{secret.name}'") from e
        except (HTTPError, OSError) as e:
            raise StoreError(f"failed to create mlpSecret: {e}") from e

        logger.info("created k8 secret: '{}' in namespace: '{}'", secret.name, secret.namespace)

    async def ensure_secret_absent(self, namespace: str, name: str):
        """Delete the secret if it exists."""
        try:
            if not await self._exists(namespace, name):
                return
            await self._call(self.v1.delete_namespaced_secret, name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                return
            raise StoreError(f"failed to delete mlpSecret: {e.status} {e.reason}") from e
        except asyncio.TimeoutError as e:
            raise StoreError(f"timed out deleting secret '{name}'") from e
        except (HTTPError, OSError) as e:
            raise StoreError(f"failed to delete mlpSecret: {e}") from e

        logger.info("deleted k8 secret: '{}' in namespace: '{}'", name, namespace)
