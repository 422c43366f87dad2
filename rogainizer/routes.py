from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from . import events as event_manager
from . import json_loader
from . import teams as team_manager
from . import users as user_manager
from . import datastore_pg as pg
from .errors import RogainizerError


bp = Blueprint('main', __name__)

# Registered only when EVENT_SCHEMA == 'courses'
events_bp = Blueprint('events', __name__, url_prefix='/api/events')

# Registered only when EVENT_SCHEMA == 'results'
results_bp = Blueprint('results', __name__, url_prefix='/api/events')


def _db():
    return current_app.extensions['rogainizer.db']


def _payload() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@bp.app_errorhandler(RogainizerError)
def handle_rogainizer_error(exc: RogainizerError):
    if exc.status_code >= 500:
        current_app.logger.error("request_failed path=%s message=%s", request.path, exc.message)
    return jsonify(exc.to_dict()), exc.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_error(exc: HTTPException):
    return jsonify({'message': exc.description or exc.name}), exc.code


@bp.app_errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    current_app.logger.exception("request_failed path=%s unexpected error", request.path)
    return jsonify({'message': str(exc) or exc.__class__.__name__}), 500


@bp.route('/')
def index():
    return {'message': 'Rogainizer API is running'}


@bp.route('/api/health')
def health():
    """Database connectivity check; 500 when ``SELECT 1`` fails."""
    try:
        with _db().connection() as conn:
            pg.ping(conn)
    except RogainizerError as exc:
        return {'status': 'error', 'db': 'disconnected', 'message': exc.message}, 500
    return {'status': 'ok', 'db': 'connected'}


@bp.route('/api/users', methods=['GET'])
def list_users():
    return jsonify(user_manager.list_users(_db()))


@bp.route('/api/users', methods=['POST'])
def create_user():
    return user_manager.create_user(_db(), _payload()), 201


@bp.route('/api/json-loader')
def load_json():
    timeout = current_app.config.get('JSON_LOADER_TIMEOUT', json_loader.DEFAULT_TIMEOUT)
    return jsonify(json_loader.fetch_json(request.args.get('url'), timeout=timeout))


#<events>
@events_bp.route('', methods=['GET'])
def list_events():
    return jsonify(event_manager.list_events(_db()))


@events_bp.route('', methods=['POST'])
def create_event():
    return event_manager.create_event(_db(), _payload()), 201


@events_bp.route('/<event_id>', methods=['PUT'])
def update_event(event_id):
    return event_manager.update_event(_db(), event_id, _payload())


@events_bp.route('/<event_id>', methods=['DELETE'])
def delete_event(event_id):
    event_manager.delete_event(_db(), event_id)
    return '', 204
#</events>


#<teams>
@events_bp.route('/<event_id>/teams', methods=['GET'])
def list_teams(event_id):
    return jsonify(team_manager.list_teams(_db(), event_id))


@events_bp.route('/<event_id>/teams', methods=['POST'])
def create_team(event_id):
    return team_manager.create_team(_db(), event_id, _payload()), 201


@events_bp.route('/<event_id>/teams/<team_id>', methods=['PUT'])
def update_team(event_id, team_id):
    return team_manager.update_team(_db(), event_id, team_id, _payload())


@events_bp.route('/<event_id>/teams/<team_id>', methods=['DELETE'])
def delete_team(event_id, team_id):
    team_manager.delete_team(_db(), event_id, team_id)
    return '', 204
#</teams>


#<results>
@results_bp.route('', methods=['GET'])
def list_result_events():
    return jsonify(event_manager.list_result_events(_db()))


@results_bp.route('/save-result', methods=['POST'])
def save_result():
    """Save a result event; 409 with ``exists: true`` unless ``overwrite`` is set."""
    outcome = event_manager.save_result(_db(), _payload())
    status = 200 if outcome['overwritten'] else 201
    return {'message': outcome['message'], 'event': outcome['event']}, status


@results_bp.route('/<event_id>', methods=['DELETE'])
def delete_result_event(event_id):
    event_manager.delete_event(_db(), event_id)
    return '', 204
#</results>
