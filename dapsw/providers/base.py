"""
Interfaces for the external systems the webhook talks to.
"""

from abc import ABC, abstractmethod

from dapsw.responses import ClusterSecret


class SecretValueProvider(ABC):
    """Source of secret values, grouped by project."""

    @abstractmethod
    async def get_secret_value(self, project: str, name: str) -> str:
        """
        Look up a secret value.

        Args:
            project: Project the secret belongs to (the pod namespace)
            name: Secret name (the declared secret key)

        Returns:
            The secret value

        Raises:
            ProviderError: lookup failed or the secret does not exist
        """
        pass

    async def health_check(self) -> bool:
        return True

    async def close(self):
        pass


class ClusterSecretStore(ABC):
    """Namespaced secret resources in the cluster."""

    @abstractmethod
    async def ensure_secret(self, secret: ClusterSecret):
        """Create the secret unless one with the same name already exists."""
        pass

    @abstractmethod
    async def ensure_secret_absent(self, namespace: str, name: str):
        """Delete the secret if it exists."""
        pass
