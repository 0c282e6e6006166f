"""
Review routes: public review summary and the key-protected sync endpoint
"""
import hmac

from quart import Blueprint, current_app, jsonify, request

from tour_gateway.providers.base import ProviderError, Success
from tour_gateway.src.routes.context import content_provider, gateway_config, review_provider

bp = Blueprint('reviews', __name__)


def _authorized(key) -> bool:
    expected = gateway_config().reviews_config.sync_key
    if not expected or not isinstance(key, str):
        return False
    return hmac.compare_digest(key.encode('utf-8'), expected.encode('utf-8'))


def _json_object(body):
    return body if isinstance(body, dict) else {}


def _unauthorized():
    current_app.logger.warning('Unauthorized review sync attempt from %s', request.remote_addr)
    return jsonify({'error': 'Unauthorized'}), 401


@bp.route('/api/reviews')
async def business_reviews():
    """Aggregated review summary; ``null`` when unavailable."""
    result = await content_provider().get_business_reviews()
    if not isinstance(result, Success):
        current_app.logger.warning('Business reviews unavailable: %s', result.detail)
        return jsonify(None)
    return jsonify(result.value.to_dict() if result.value else None)


@bp.route('/api/reviews/sync', methods=['GET'])
async def sync_status():
    action = request.args.get('action', 'status')

    if action == 'fetch':
        result = await review_provider().fetch_reviews()
        if not isinstance(result, Success):
            return jsonify({'error': 'Failed to fetch reviews'}), 500
        data = result.value
        reviews = data.get('reviews') or []
        return jsonify({
            'status': 'success',
            'reviews_count': len(reviews),
            'business': {
                'name': data.get('business_name'),
                'rating': data.get('rating'),
                'total_reviews': data.get('review_count'),
            },
            'sample': reviews[:3],
        })

    if action == 'status':
        result = await content_provider().get_google_reviews()
        if not isinstance(result, Success):
            current_app.logger.error('Error getting reviews: %s', result.detail)
            return jsonify({'error': 'Failed to get reviews'}), 500
        return jsonify({
            'status': 'success',
            'source': 'wordpress',
            'reviews_count': len(result.value),
            'cached': True,
            'reviews': [review.to_dict() for review in result.value[:5]],
        })

    return jsonify({'error': 'Unknown action'}), 400


@bp.route('/api/reviews/sync', methods=['POST'])
async def trigger_sync():
    body = _json_object(await request.get_json(silent=True))
    key = body.get('key')
    if not _authorized(key):
        return _unauthorized()

    if body.get('action') != 'sync':
        return jsonify({'error': 'Unknown action'}), 400

    try:
        result = await review_provider().sync_reviews(key)
    except ProviderError as e:
        current_app.logger.error('Review sync misconfigured: %s', e)
        return jsonify({'error': 'Sync failed', 'details': str(e)}), 500

    if not isinstance(result, Success):
        current_app.logger.error('Review sync failed: %s', result.detail)
        return jsonify({'error': 'Sync failed', 'details': result.detail}), 500
    return jsonify({
        'status': 'success',
        'message': f"Synced {result.value['count']} reviews to WordPress",
        'details': result.value['details'],
    })


@bp.route('/api/reviews/sync', methods=['DELETE'])
async def clear_reviews():
    body = _json_object(await request.get_json(silent=True))
    key = body.get('key')
    if not _authorized(key):
        return _unauthorized()

    try:
        result = await review_provider().clear_reviews(key)
    except ProviderError as e:
        current_app.logger.error('Review clear misconfigured: %s', e)
        return jsonify({'error': 'Clear failed'}), 500

    if not isinstance(result, Success):
        current_app.logger.error('Review clear failed: %s', result.detail)
        return jsonify({'error': 'Clear failed'}), 500
    return jsonify({'status': 'success', 'message': 'All reviews cleared'})


def register(app):
    """Register reviews blueprint with app"""
    app.register_blueprint(bp)
