"""HTTP surface for the exporter.

Serves the exposition text on ``/metrics`` with optional HTTP Basic
authentication. A failed scrape returns 500 for that request only; the
process keeps serving.
"""

from __future__ import annotations

import hmac
import logging

from flask import Flask, Response, request
from prometheus_client import CONTENT_TYPE_LATEST

from dockerprom.collector import ContainerMetricsCollector
from dockerprom.core.errors import DockerpromError

logger = logging.getLogger(__name__)


def create_app(
    collector: ContainerMetricsCollector, basicauth_header: str | None = None
) -> Flask:
    """Create the Flask app.

    Args:
        collector: Collector run once per scrape
        basicauth_header: Expected ``Authorization`` header, or None for no auth
    """
    app = Flask(__name__)

    def _authorized() -> bool:
        if basicauth_header is None:
            return True
        supplied = request.headers.get("Authorization")
        if supplied is None:
            logger.debug("Basicauth failed: no Authorization header")
            return False
        if not hmac.compare_digest(supplied.encode("utf-8"), basicauth_header.encode("utf-8")):
            logger.debug("Basicauth failed: wrong credentials")
            return False
        return True

    @app.route("/metrics")
    def metrics_endpoint() -> Response:
        """Prometheus metrics endpoint."""
        logger.debug(f"Got request for {request.path}")
        if not _authorized():
            return Response("", status=401, headers={"WWW-Authenticate": "Basic"})

        try:
            body = collector.collect()
        except DockerpromError as e:
            logger.error(f"Failed getting metrics: {e}")
            return Response("Error occurred. Please see logs.", status=500, mimetype="text/plain")
        return Response(body, content_type=CONTENT_TYPE_LATEST)

    @app.route("/health")
    def health() -> tuple[dict[str, str], int]:
        """Health check endpoint."""
        return {"status": "ok"}, 200

    return app


def serve(app: Flask, host: str, port: int) -> None:
    """Run the threaded development server; scrapes are handled concurrently."""
    logger.info(f"Listening on {host}:{port}...")
    app.run(host=host, port=port, threaded=True)
