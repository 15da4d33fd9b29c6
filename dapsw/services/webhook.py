#!/usr/bin/env python3
"""
DAP Secret Webhook

On pod CREATE, the secrets a pod declares in its annotations are fetched from
the MLP API and written to a secret named after the pod; every container gets
env vars reading from that secret. On pod DELETE, the secret is removed.

The env vars follow the convention Flyte expects, ``_FSEC_{GROUP}_{KEY}``, but
read from the per-pod secret. The secret group is not used for the lookup.
"""

import copy
import json
import time
from contextlib import asynccontextmanager
from typing import Dict, Optional

import jsonpatch
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import ValidationError as SchemaValidationError

from dapsw.annotations import unmarshal_secrets
from dapsw.config import WebhookConfig
from dapsw.exceptions import (
    DecodeError,
    InternalSerializationError,
    UnsupportedOperationError,
    WebhookError,
)
from dapsw.injector import inject_secret_env_var, validate_secret_request
from dapsw.metrics import MetricsCollector, get_status_string
from dapsw.models import Pod
from dapsw.providers.base import ClusterSecretStore, SecretValueProvider
from dapsw.providers.k8s import KubernetesSecretStore, load_core_v1_api
from dapsw.providers.mlp import MLPSecretProvider, init_google_credentials
from dapsw.responses import (
    ADMISSION_API_VERSION,
    ADMISSION_KIND,
    AdmissionOutcome,
    ClusterSecret,
    build_admission_review,
)
from dapsw.server import WebServer

OPERATION_CREATE = "CREATE"
OPERATION_DELETE = "DELETE"


class OutcomeRecorder:
    """Records the outcome of one admission request when the request scope exits."""

    def __init__(self, metrics: MetricsCollector, operation: str):
        self.metrics = metrics
        self.operation = operation
        self.namespace = ""
        self.outcome: Optional[AdmissionOutcome] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        allowed = self.outcome is not None and self.outcome.allowed
        self.metrics.record_outcome(
            self.namespace,
            get_status_string(bool(self.namespace) and allowed),
            self.operation,
        )
        return False


class SecretWebhook:
    """Admission decisions for pods declaring secrets."""

    def __init__(
        self,
        provider: SecretValueProvider,
        store: ClusterSecretStore,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.store = store
        self.metrics = metrics or MetricsCollector()

    async def mutate(self, admission_review: Dict) -> AdmissionOutcome:
        """
        Main admission entry point.

        Args:
            admission_review: Kubernetes admission review request

        Returns:
            The admission outcome; never raises
        """
        start_time = time.time()
        request = admission_review.get("request") or {}
        uid = request.get("uid", "unknown")
        operation = request.get("operation", "")

        with OutcomeRecorder(self.metrics, operation) as recorder:
            try:
                outcome = await self._dispatch(request, recorder)
            except WebhookError as e:
                outcome = AdmissionOutcome.errored(e.status_code, str(e))
            except Exception as e:
                logger.exception("Unexpected error processing admission request {}", uid)
                outcome = AdmissionOutcome.errored(500, f"Internal error: {e}")

            recorder.outcome = outcome

            if not outcome.allowed:
                self._log_rejection(admission_review, outcome)

            logger.debug(
                "Admission decision for {}: allowed={}, duration={:.3f}s",
                uid,
                outcome.allowed,
                time.time() - start_time,
            )
            return outcome

    async def _dispatch(self, request: Dict, recorder: OutcomeRecorder) -> AdmissionOutcome:
        operation = request.get("operation", "")

        # Pod details are in "object" for CREATE and in "oldObject" for DELETE
        if operation == OPERATION_CREATE:
            raw = request.get("object")
            pod = self._decode_pod(raw)
            namespace = pod.namespace or request.get("namespace", "")
            recorder.namespace = namespace
            logger.info(
                "received create request for pod: '{}' in namespace: '{}'", pod.name, namespace
            )
            return await self._mutate_pod_and_create_secret(raw, pod, namespace)

        if operation == OPERATION_DELETE:
            pod = self._decode_pod(request.get("oldObject"))
            namespace = pod.namespace or request.get("namespace", "")
            recorder.namespace = namespace
            logger.info(
                "received delete request for pod: '{}' in namespace: '{}'", pod.name, namespace
            )
            return await self._delete_secret(pod, namespace)

        # Excluded by the webhook registration rules
        raise UnsupportedOperationError("unsupported operation on pod")

    def _decode_pod(self, raw) -> Pod:
        if not isinstance(raw, dict):
            raise DecodeError("pod object is missing or is not a JSON object")
        try:
            pod = Pod.model_validate(raw)
        except SchemaValidationError as e:
            raise DecodeError(str(e)) from e
        if pod.kind and pod.kind != "Pod":
            raise DecodeError(f"expected object of kind Pod, got {pod.kind}")
        return pod

    async def _mutate_pod_and_create_secret(
        self, raw: Dict, pod: Pod, namespace: str
    ) -> AdmissionOutcome:
        """Inject the declared secrets as env vars and create the pod's secret."""
        secret_requests = unmarshal_secrets(pod.annotations)

        # Reject invalid declarations before any external call
        for secret_request in secret_requests:
            validate_secret_request(secret_request)

        cluster_secret = ClusterSecret(name=pod.name, namespace=namespace)
        mutated = copy.deepcopy(raw)

        for secret_request in secret_requests:
            inject_secret_env_var(secret_request, mutated)

            value = await self.provider.get_secret_value(namespace, secret_request.key)
            cluster_secret.data[secret_request.key] = value.encode("utf-8")

        logger.info(
            "injecting {} secrets to pod: '{}' in namespace: '{}'",
            len(secret_requests),
            pod.name,
            namespace,
        )

        await self.store.ensure_secret(cluster_secret)

        return AdmissionOutcome.allow(self._create_patch(raw, mutated))

    def _create_patch(self, original: Dict, mutated: Dict) -> Optional[bytes]:
        """JSON patch turning the submitted pod into the mutated one."""
        try:
            operations = jsonpatch.make_patch(original, mutated).patch
            if not operations:
                return None
            return json.dumps(operations).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise InternalSerializationError(f"failed to create pod patch: {e}") from e

    async def _delete_secret(self, pod: Pod, namespace: str) -> AdmissionOutcome:
        """Delete the secret created along with the pod. The pod is not modified."""
        await self.store.ensure_secret_absent(namespace, pod.name)
        return AdmissionOutcome.allow()

    def _log_rejection(self, admission_review: Dict, outcome: AdmissionOutcome):
        """Log the request and response of a blocked admission."""
        uid = (admission_review.get("request") or {}).get("uid", "unknown")
        try:
            logger.error("fail to handle request: {}", json.dumps(admission_review))
            logger.error("admission err response: {}", json.dumps(outcome.to_response(uid)))
        except (TypeError, ValueError) as e:
            # The rejection itself stands
            logger.error("unable to serialize rejected admission request {}: {}", uid, e)

    async def health_check(self) -> Dict:
        """Check health of the secret provider."""
        name = self.provider.__class__.__name__
        try:
            healthy = await self.provider.health_check()
            return {"healthy": healthy, "providers": {name: {"healthy": healthy}}}
        except Exception as e:
            return {"healthy": False, "providers": {name: {"healthy": False, "error": str(e)}}}


class SecretWebhookServer(WebServer):
    """Async web server for the secret webhook."""

    def __init__(self, config: WebhookConfig, webhook: SecretWebhook):
        self.webhook = webhook

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            yield
            await webhook.provider.close()

        super().__init__(config, lifespan=lifespan)

    def _setup_routes(self):
        """Setup web routes."""
        self.app.add_api_route(self.config.mutate_path, self.handle_mutate, methods=["POST"])
        self.app.add_api_route("/health", self.handle_health, methods=["GET"])
        self.app.add_api_route("/ready", self.handle_ready, methods=["GET"])
        if self.config.metrics_enabled:
            self.app.add_api_route("/metrics", self.handle_metrics, methods=["GET"])

    async def handle_mutate(self, request: Request) -> JSONResponse:
        """Handle mutation webhook requests."""
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("application/json"):
            logger.error("contentType={}, expect application/json", content_type)
            return JSONResponse(
                content={"error": f"Invalid content type '{content_type}', expect application/json"},
                status_code=400,
            )

        try:
            admission_review = await request.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            logger.error("Invalid JSON in request: {}", e)
            return JSONResponse(content={"error": "Invalid JSON"}, status_code=400)

        # Validate request structure
        if not isinstance(admission_review, dict) or not isinstance(
            admission_review.get("request"), dict
        ):
            return JSONResponse(
                content={"error": "Invalid admission review: missing request"},
                status_code=400,
            )

        api_version = admission_review.get("apiVersion")
        kind = admission_review.get("kind")
        if api_version != ADMISSION_API_VERSION or kind != ADMISSION_KIND:
            msg = f"Unsupported group version kind: {api_version}, Kind={kind}"
            logger.error(msg)
            return JSONResponse(content={"error": msg}, status_code=400)

        uid = admission_review["request"].get("uid", "")
        try:
            outcome = await self.webhook.mutate(admission_review)
        except Exception as e:
            logger.exception("Error handling mutation request")
            outcome = AdmissionOutcome.errored(500, f"Internal server error: {e}")

        return JSONResponse(content=build_admission_review(uid, outcome))

    async def handle_health(self, request: Request) -> JSONResponse:
        """Health check endpoint."""
        health_status = await self.webhook.health_check()
        status_code = 200 if health_status["healthy"] else 503
        return JSONResponse(content=health_status, status_code=status_code)

    async def handle_ready(self, request: Request) -> JSONResponse:
        """Readiness check endpoint."""
        health_status = await self.webhook.health_check()
        if health_status["healthy"]:
            return JSONResponse(content={"ready": True})
        else:
            return JSONResponse(content={"ready": False}, status_code=503)

    async def handle_metrics(self, request: Request) -> PlainTextResponse:
        """Prometheus metrics endpoint."""
        metrics = self.webhook.metrics.export_prometheus()
        return PlainTextResponse(content=metrics, media_type="text/plain")


def create_server(config: WebhookConfig) -> SecretWebhookServer:
    """Wire the MLP provider and the Kubernetes secret store into a server."""
    metrics = MetricsCollector()
    credentials = init_google_credentials() if config.mlp_google_auth else None
    provider = MLPSecretProvider(config, metrics=metrics, credentials=credentials)
    store = KubernetesSecretStore(load_core_v1_api(config.in_cluster), timeout=config.k8s_timeout)
    return SecretWebhookServer(config, SecretWebhook(provider, store, metrics))


def run(config: Optional[WebhookConfig] = None):
    """Main entry point."""
    try:
        config = config or WebhookConfig()

        if config.debug:
            logger.debug("Debug mode enabled")
            logger.debug("Configuration: {}", config.export_json())

        server = create_server(config)
        server.run()

    except Exception as e:
        logger.exception("Failed to start secret webhook: {}", e)
        raise


if __name__ == "__main__":
    run()
