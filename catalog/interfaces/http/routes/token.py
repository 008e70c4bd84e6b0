import logging

from flask import Blueprint, current_app, jsonify, request

from catalog.interfaces.http.errors import error_response

logger = logging.getLogger(__name__)

token_bp = Blueprint('token_bp', __name__, url_prefix='/api/token')


@token_bp.route('', methods=['POST'])
def set_token():
    payload = request.get_json(silent=True) or {}
    token = payload.get('token')
    if not isinstance(token, str) or not token.strip():
        return error_response(400, 'Invalid request', 'token is required')
    expires_in = payload.get('expires_in')
    try:
        expires_in = int(expires_in) if expires_in is not None else None
    except (TypeError, ValueError):
        return error_response(400, 'Invalid request', 'expires_in must be an integer')
    tokens = current_app.extensions['token_cache']
    tokens.set_user_token(token.strip(), expires_in)
    logger.info("User token set manually")
    return jsonify({'success': True, **tokens.status()})


@token_bp.route('/status', methods=['GET'])
def token_status():
    return jsonify(current_app.extensions['token_cache'].status())
