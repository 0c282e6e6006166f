"""
Media routes: allow-listed proxy for CMS uploads
"""
from quart import Blueprint, Response, current_app, jsonify, request

from tour_gateway.providers.base import Success
from tour_gateway.services.media_proxy import MediaProxy
from tour_gateway.src.routes.context import gateway_config, session_manager

bp = Blueprint('media', __name__)


@bp.route('/api/media')
async def media_proxy():
    """Stream an image from the CMS uploads directory."""
    config = gateway_config()
    proxy = MediaProxy(config.media_config, config.cms_config, session_manager())

    validated = proxy.policy.validate(request.args.get('url'))
    if not isinstance(validated, Success):
        return jsonify({'error': validated.detail}), validated.status

    target = validated.value
    fetched = await proxy.fetch(target, request.headers.get('Accept'))
    if not isinstance(fetched, Success):
        current_app.logger.warning('Media proxy failed for %s%s (%s)', target.host, target.path, fetched.status)
        return jsonify(proxy.diagnostic(target, fetched.status, fetched.detail)), fetched.status

    upstream = fetched.value
    return Response(upstream.chunks(), status=200, headers=upstream.headers)


def register(app):
    """Register media blueprint with app"""
    app.register_blueprint(bp)
