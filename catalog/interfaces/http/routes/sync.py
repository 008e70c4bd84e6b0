import hmac
import logging
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

from catalog.interfaces.http.errors import error_response

logger = logging.getLogger(__name__)

sync_bp = Blueprint('sync_bp', __name__, url_prefix='/api')


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _start_sync(artists=None):
    runner = current_app.extensions['sync_runner']
    tokens = current_app.extensions['token_cache']
    has_user_token = tokens.user_token() is not None
    if not has_user_token:
        logger.warning("No user token set; tempo lookups may be refused")
    started = runner.start(artists)
    if started:
        message = 'Sync started. This can take a few minutes.'
    else:
        message = 'A sync is already running.'
    return jsonify({
        'success': True,
        'message': message,
        'timestamp': _now_iso(),
        'hasUserToken': has_user_token,
        'alreadyRunning': not started,
    }), 202


@sync_bp.route('/sync', methods=['POST'])
def trigger_sync():
    logger.info("Manual sync requested from %s", request.headers.get('Origin') or request.remote_addr)
    payload = request.get_json(silent=True) or {}
    artists = payload.get('artists')
    if artists is not None:
        if isinstance(artists, str):
            artists = [artists]
        if not isinstance(artists, list) or not all(isinstance(a, str) for a in artists):
            return error_response(400, 'Invalid request', "'artists' must be a list of names")
    return _start_sync(artists)


@sync_bp.route('/sync/status', methods=['GET'])
def sync_status():
    runner = current_app.extensions['sync_runner']
    return jsonify({'running': runner.is_running(), 'lastRun': runner.last_run()})


@sync_bp.route('/cron', methods=['GET', 'POST'])
def cron_sync():
    secret = current_app.extensions['catalog_settings'].cron_secret
    if secret:
        supplied = request.headers.get('Authorization', '')
        if not hmac.compare_digest(supplied, f'Bearer {secret}'):
            logger.warning("Rejected scheduled sync with a bad or missing secret")
            return jsonify({'error': 'Unauthorized', 'message': 'Invalid cron secret'}), 401
    logger.info("Scheduled sync triggered")
    return _start_sync()


@sync_bp.route('/sync/cancel', methods=['POST'])
def cancel_sync():
    runner = current_app.extensions['sync_runner']
    cancelled = runner.cancel('cancelled from the API')
    if cancelled:
        logger.info("Running sync cancelled on request")
    return jsonify({
        'success': cancelled,
        'message': 'Cancellation requested.' if cancelled else 'No sync is running.',
        'timestamp': _now_iso(),
    }), 202 if cancelled else 409
