"""
Contact routes: server-side proxy for CMS form submissions (Contact Form 7)
"""
import asyncio
import json
import re

import aiohttp
from quart import Blueprint, current_app, jsonify, request

from tour_gateway.src.routes.context import gateway_config, session_manager

bp = Blueprint('contact', __name__)

FORM_ID_RE = re.compile(r'^[A-Za-z0-9-]+$')


def _mail_failed(message, status):
    return jsonify({'status': 'mail_failed', 'message': message}), status


def build_multipart(form) -> aiohttp.MultipartWriter:
    """Re-encode every string field of ``form`` as multipart/form-data."""
    writer = aiohttp.MultipartWriter('form-data')
    for name, value in form.items(multi=True):
        if not isinstance(value, str):
            continue
        part = writer.append(value)
        part.set_content_disposition('form-data', name=name)
    return writer


@bp.route('/api/contact', methods=['POST'])
async def submit_contact_form():
    """Forward a form submission to the CMS feedback endpoint."""
    config = gateway_config()
    form = await request.form
    form_id = (form.get('_wpcf7') or '').strip()

    if not form_id:
        return _mail_failed('Form ID is required', 400)
    allowed = config.contact_config.allowed_form_ids
    if not FORM_ID_RE.match(form_id) or (allowed and form_id not in allowed):
        current_app.logger.warning('Rejected contact form id %r', form_id)
        return _mail_failed('Unknown form', 400)

    origin = config.cms_config.origin
    if not origin:
        current_app.logger.error('Contact form proxy has no CMS origin configured')
        return _mail_failed('Failed to submit form. Please try again.', 500)

    endpoint = f"{origin}/wp-json/contact-form-7/v1/contact-forms/{form_id}/feedback"
    auth = aiohttp.BasicAuth(*config.cms_config.basic_auth) if config.cms_config.basic_auth else None

    try:
        session = await session_manager().get_session()
        async with session.post(endpoint, data=build_multipart(form), auth=auth,
                                timeout=session_manager().timeout('forms')) as resp:
            status = resp.status
            text = await resp.text()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        current_app.logger.error('Contact form proxy error: %s', e or type(e).__name__)
        return _mail_failed('Failed to submit form. Please try again.', 500)

    try:
        data = json.loads(text)
    except ValueError:
        current_app.logger.error('Contact form upstream returned non-JSON: %s', text[:200])
        return _mail_failed('Invalid response from server', 500)

    return jsonify(data), (200 if 200 <= status < 300 else status)


def register(app):
    """Register contact blueprint with app"""
    app.register_blueprint(bp)
