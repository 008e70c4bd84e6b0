"""Aggregate statistics over the stored catalog."""

from flask import Blueprint, current_app, jsonify

from catalog.domain.library.aggregates import artist_metrics, global_metrics

stats_bp = Blueprint('stats_bp', __name__, url_prefix='/metrics')


@stats_bp.route('/global', methods=['GET'])
def global_stats():
    tracks = current_app.extensions['track_repository'].list_tracks()
    return jsonify(global_metrics([track.to_dict() for track in tracks]))


@stats_bp.route('/artist/<path:name>', methods=['GET'])
def artist_stats(name):
    tracks = current_app.extensions['track_repository'].tracks_by_artist(name)
    return jsonify(artist_metrics([track.to_dict() for track in tracks]))
