import os

from fixtures.env import *  # noqa


def pytest_configure(config):
    """Set up environment variables before any modules are imported."""
    os.environ.setdefault("MLP_API_HOST", "http://mlp.test/v1")
    os.environ.setdefault("REQUIRE_TLS", "false")
    os.environ.setdefault("IN_CLUSTER", "false")
    os.environ.setdefault("MLP_GOOGLE_AUTH", "false")
    os.environ.setdefault("DEBUG", "false")


pytest_configure(None)

from fixtures.k8s import *  # noqa
from fixtures.http import *  # noqa
