"""JSON routes for the experience engine. Authentication is handled upstream."""
from flask import jsonify, request

from skillstack_app.core.error_handlers import success_response
from skillstack_app.core.exceptions import ValidationError

from . import experience_admin_bp, experience_api_bp
from . import interface


def _json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')
    return payload


@experience_api_bp.route('/users/<user_id>/submission-tokens', methods=['POST'])
def issue_submission_token_api(user_id):
    """Issue an idempotency token for one upcoming submission."""
    return jsonify(success_response(interface.issue_submission_token(user_id))), 201


@experience_api_bp.route('/users/<user_id>/quiz-sessions', methods=['POST'])
def ingest_quiz_session_api(user_id):
    result = interface.ingest_quiz_session(user_id, _json_body())
    status = 200 if result['duplicate'] else 201
    return jsonify(success_response(result)), status


@experience_api_bp.route('/users/<user_id>/course-sessions', methods=['POST'])
def ingest_course_session_api(user_id):
    result = interface.ingest_course_session(user_id, _json_body())
    status = 200 if result['duplicate'] else 201
    return jsonify(success_response(result)), status


@experience_api_bp.route('/users/<user_id>/stats', methods=['GET'])
def get_user_stats_api(user_id):
    return jsonify(success_response(interface.get_user_stats(user_id)))


@experience_api_bp.route('/users/<user_id>/streak/reconcile', methods=['POST'])
def reconcile_streak_api(user_id):
    return jsonify(success_response(interface.reconcile_streak(user_id)))


@experience_admin_bp.route('/users/<user_id>/audit', methods=['GET'])
def audit_user_api(user_id):
    """Run the ledger audit; a mismatch answers 409 and freezes the user."""
    return jsonify(success_response(interface.audit_user(user_id)))


@experience_admin_bp.route('/users/<user_id>/reconcile', methods=['POST'])
def reconcile_user_totals_api(user_id):
    return jsonify(success_response(interface.reconcile_user_totals(user_id)))


@experience_admin_bp.route('/users/<user_id>/reset', methods=['POST'])
def reset_user_progress_api(user_id):
    return jsonify(success_response(interface.reset_user_progress(user_id), message='Progress reset'))


@experience_admin_bp.route('/settings', methods=['GET'])
def get_reward_settings_api():
    return jsonify(success_response(interface.get_reward_settings()))


@experience_admin_bp.route('/settings/<category>/<key>', methods=['PUT'])
def update_reward_setting_api(category, key):
    payload = _json_body()
    if 'value' not in payload:
        raise ValidationError('value is required', errors={'value': 'required'})
    setting = interface.update_reward_setting(
        category,
        key,
        payload['value'],
        is_active=payload.get('is_active', True),
        description=payload.get('description'),
    )
    return jsonify(success_response(setting, message='Setting updated'))
