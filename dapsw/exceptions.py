"""
Errors raised while handling an admission request.

Every error carries the HTTP-style status code used in the rejected
admission response.
"""


class WebhookError(Exception):
    """Base class for errors that end an admission request with a rejection."""

    status_code = 500


class DecodeError(WebhookError):
    """The admission envelope or the pod object could not be decoded."""

    status_code = 400


class UnsupportedOperationError(WebhookError):
    status_code = 405


class SecretDecodeError(WebhookError):
    """A secret annotation on the pod could not be decoded."""


class ValidationError(WebhookError):
    """A declared secret is missing its key or uses an unknown mount requirement."""


class ProviderError(WebhookError):
    """The secret value lookup failed."""


class SecretNotFoundError(ProviderError):
    pass


class StoreError(WebhookError):
    """Creating or deleting the cluster secret failed."""


class InternalSerializationError(WebhookError):
    pass
