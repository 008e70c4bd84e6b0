from flask import Blueprint, current_app, jsonify

artists_bp = Blueprint('artists_bp', __name__)


@artists_bp.route('/artists', methods=['GET'])
def list_artists():
    return jsonify(current_app.extensions['track_repository'].list_artists())


@artists_bp.route('/artists/<path:name>/tracks', methods=['GET'])
def artist_tracks(name):
    tracks = current_app.extensions['track_repository'].tracks_by_artist(name)
    return jsonify([track.to_dict() for track in tracks])
