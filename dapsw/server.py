import ssl
from abc import abstractmethod
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.applications import AppType
from fastapi.responses import ORJSONResponse
from loguru import logger
from starlette.types import Lifespan

from dapsw.config import ServerConfig


class WebServer:
    """Async web server for admission webhooks using FastAPI."""

    def __init__(self, config: ServerConfig, lifespan: Optional[Lifespan[AppType]] = None):
        self.config = config
        self.app = FastAPI(
            debug=config.debug,
            default_response_class=ORJSONResponse,
            lifespan=lifespan
        )
        self._setup_routes()

    @abstractmethod
    def _setup_routes(self):
        """
        Setup web routes.
        Example:
        self.app.add_api_route('/route', self.handle_route, methods=["GET"])
        """
        raise NotImplementedError()

    def uvicorn_options(self) -> dict:
        """Keyword arguments for uvicorn.run, including TLS settings."""
        options = {
            "host": self.config.bind_address,
            "port": self.config.port,
            "log_level": "debug" if self.config.debug else "info",
        }

        if self.config.tls_cert_path and self.config.tls_key_path:
            options["ssl_certfile"] = str(self.config.tls_cert_path)
            options["ssl_keyfile"] = str(self.config.tls_key_path)

            if self.config.mtls_required:
                if not self.config.client_ca_path:
                    raise ValueError("mTLS requires a client CA certificate")
                options["ssl_cert_reqs"] = ssl.CERT_REQUIRED
                options["ssl_ca_certs"] = str(self.config.client_ca_path)
        elif self.config.require_tls:
            raise ValueError("TLS certificate and key are required to serve admission requests")

        return options

    def run(self):
        """Run the webhook server."""
        options = self.uvicorn_options()
        logger.info(f"Starting server on {options['host']}:{options['port']}")

        if "ssl_certfile" in options:
            logger.info("TLS enabled")
            if "ssl_ca_certs" in options:
                logger.info(f"mTLS enabled with CA: {options['ssl_ca_certs']}")
        else:
            logger.warning("Starting server without TLS; intended for controlled environments only")

        uvicorn.run(self.app, **options)
