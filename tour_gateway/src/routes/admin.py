"""
Admin routes: health checks
"""
import time

from quart import Blueprint, jsonify

from tour_gateway.src.routes.context import content_provider, gateway_config, review_provider, session_manager

bp = Blueprint('admin', __name__)


@bp.route('/healthz')
async def healthz():
    """Lightweight health endpoint returning component status."""
    config = gateway_config()
    status = {
        'app': 'ok',
        'time': time.time(),
        'environment': config.environment.value,
        'cms': bool(config.cms_config.api_url),
        'cms_auth': bool(config.cms_config.basic_auth),
        'serpapi': bool(config.reviews_config.serpapi_key),
        'locales': list(config.locale_config.locales),
    }
    return jsonify(status)


@bp.route('/healthz/providers')
async def providers_health():
    """Ping upstreams and report per-provider health."""
    results = {'session': await session_manager().health_check()}
    for provider in (content_provider(), review_provider()):
        metadata = await provider.get_metadata()
        entry = (await provider.health_check()).to_dict()
        entry['metadata'] = metadata.to_dict()
        results[metadata.name] = entry
    healthy = results['session'] and results['wordpress']['status'] == 'healthy'
    return jsonify({'ok': healthy, 'providers': results}), (200 if healthy else 503)


def register(app):
    """Register admin blueprint with app"""
    app.register_blueprint(bp)
