import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, redirect, request

from catalog.errors import CatalogError

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def _frontend_redirect(**params):
    base = current_app.extensions['catalog_settings'].frontend_url or '/'
    separator = '&' if '?' in base else '?'
    return redirect(f"{base}{separator}{urlencode(params)}")


@auth_bp.route('/login', methods=['GET', 'POST'])
def login():
    try:
        url = current_app.extensions['user_auth'].authorize_url()
    except CatalogError as exc:
        logger.error("Cannot start Spotify login: %s", exc)
        return _frontend_redirect(auth='error', message=str(exc))
    return redirect(url)


@auth_bp.route('/callback', methods=['GET'])
def callback():
    error = request.args.get('error')
    if error:
        logger.warning("Spotify authorization denied: %s", error)
        return _frontend_redirect(auth='error', message=error)
    code = request.args.get('code')
    if not code:
        return _frontend_redirect(auth='error', message='No authorization code received')
    try:
        current_app.extensions['user_auth'].exchange_code(code)
    except CatalogError as exc:
        logger.error("Authorization code exchange failed: %s", exc)
        return _frontend_redirect(auth='error', message=str(exc))
    # The token stays server-side; only the outcome goes back to the browser.
    return _frontend_redirect(auth='success')
