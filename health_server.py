"""
Flask health check server for monitoring and load balancers.

Endpoints:
    GET /health, GET /   service status, dependency checks, realtime stats
    GET /ping            liveness only

Usage:
    python health_server.py
"""

from __future__ import annotations
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify

from config import CONFIG
from logging_config import get_logger, setup_logging
from realtime.bridge import RealtimeBridge, get_realtime_bridge

logger = get_logger(__name__)

_STARTED_AT = time.time()

DependencyCheck = Callable[[], Any]


def _check_realtime(bridge: RealtimeBridge) -> Dict[str, Any]:
    if bridge.closed:
        raise RuntimeError("realtime bridge is closed")
    return bridge.stats()


def create_app(
    bridge: Optional[RealtimeBridge] = None,
    checks: Optional[Dict[str, DependencyCheck]] = None,
) -> Flask:
    """Build the health app. Each entry in `checks` raises to report its dependency unhealthy."""
    app = Flask(__name__)
    dependency_checks: Dict[str, DependencyCheck] = dict(checks or {})

    def resolve_bridge() -> RealtimeBridge:
        return bridge if bridge is not None else get_realtime_bridge()

    @app.route('/health')
    @app.route('/')
    def health_endpoint():
        start = time.perf_counter()
        dependencies: Dict[str, str] = {}
        realtime: Dict[str, Any] = {}
        errors: Dict[str, str] = {}

        try:
            realtime = _check_realtime(resolve_bridge())
            dependencies['realtime'] = 'healthy'
        except Exception as e:
            dependencies['realtime'] = 'unhealthy'
            errors['realtime'] = str(e)

        for name, check in dependency_checks.items():
            try:
                check()
                dependencies[name] = 'healthy'
            except Exception as e:
                dependencies[name] = 'unhealthy'
                errors[name] = str(e)

        healthy = not errors
        body = {
            'status': 'healthy' if healthy else 'unhealthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'service': CONFIG.app.service_name,
            'version': CONFIG.app.service_version,
            'uptime': round(time.time() - _STARTED_AT, 3),
            'responseTime': f"{int((time.perf_counter() - start) * 1000)}ms",
            'dependencies': dependencies,
            'realtime': realtime,
        }
        if errors:
            body['errors'] = errors
            logger.warning("health_check_unhealthy", errors=errors)

        response = jsonify(body)
        response.status_code = 200 if healthy else 503
        return response

    @app.route('/ping')
    def ping():
        """Simple ping endpoint."""
        return jsonify({"status": "ok", "message": "pong"})

    return app


if __name__ == '__main__':
    setup_logging(CONFIG.app.service_name)
    create_app().run(host='0.0.0.0', port=CONFIG.app.port)
