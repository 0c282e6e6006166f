"""
Tour gateway Quart application.

``create_app`` wires the shared pieces together: configuration, logging,
CORS, the app-wide HTTP session, a fresh request cache per inbound request,
the route blueprints and the locale routing middleware.
"""

from typing import Optional

from quart import Quart, g, jsonify
from quart_cors import cors

from tour_gateway.config import Config, get_config, setup_logging
from tour_gateway.services.request_cache import RequestCache
from tour_gateway.services.session_manager import SessionManager
from tour_gateway.src.locale_routing import LocaleRoutingMiddleware
from tour_gateway.src.routes import register_blueprints


def create_app(config: Optional[Config] = None, sessions: Optional[SessionManager] = None) -> Quart:
    """Build the gateway app.

    Args:
        config: Gateway configuration; resolved from the environment if omitted
        sessions: Session manager to use instead of a fresh one (tests)
    """
    config = config or get_config()
    setup_logging(config)

    app = Quart(__name__)
    app.config['GATEWAY_CONFIG'] = config
    app.config['SESSION_MANAGER'] = sessions or SessionManager(config)

    origins = config.cors_origins
    cors(app, allow_origin='*' if origins == ['*'] else origins,
         allow_methods=["GET", "POST", "DELETE", "OPTIONS"])

    @app.before_request
    async def _open_request_cache():
        g.request_cache = RequestCache()

    @app.teardown_request
    async def _close_request_cache(exc):
        cache = g.pop('request_cache', None)
        if cache is not None:
            cache.clear()

    @app.errorhandler(404)
    async def not_found(error):
        return jsonify({'error': 'not_found'}), 404

    @app.after_serving
    async def shutdown():
        await app.config['SESSION_MANAGER'].close()

    register_blueprints(app)
    app.asgi_app = LocaleRoutingMiddleware(app.asgi_app, config.locale_config)

    app.logger.info("Tour gateway ready (environment=%s, locales=%s)",
                    config.environment.value, ','.join(config.locale_config.locales))
    return app
