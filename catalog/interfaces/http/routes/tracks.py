import logging

from flask import Blueprint, current_app, jsonify, request

from catalog.interfaces.http.errors import error_response

logger = logging.getLogger(__name__)

tracks_bp = Blueprint('tracks_bp', __name__)


def get_track_repository():
    return current_app.extensions['track_repository']


@tracks_bp.route('/tracks', methods=['GET'])
def list_tracks():
    genre = request.args.get('genre')
    if genre is not None and not genre.strip():
        genre = None
    tracks = get_track_repository().list_tracks(genre=genre)
    return jsonify([track.to_dict() for track in tracks])


@tracks_bp.route('/tracks/<identifier>', methods=['GET'])
def get_track(identifier):
    track = get_track_repository().get_track(identifier)
    if track is None:
        return error_response(404, 'Track not found', f'No track with id {identifier}')
    return jsonify(track.to_dict())
