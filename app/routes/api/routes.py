import logging
from datetime import datetime, timezone
from functools import wraps

from flask import jsonify, request
from flask_login import current_user, login_required

from app import limiter
from app.errors import Unauthorized
from app.forms.auth import UserCreateForm, sanitize_input
from app.forms.matches import MatchForm, SettleMatchForm
from app.forms.wagers import WagerForm, WagerUpdateForm
from app.routes import form_error_response
from app.routes.api import bp
from app.services import (
    leaderboard_service,
    match_service,
    settlement_service,
    user_service,
    wager_service,
)
from app.socketio_handlers import broadcast_match_settled, get_connection_stats
from app.storage import get_storage
from app.utils.cache_utils import cached_route

logger = logging.getLogger(__name__)


def admin_required(f):
    """Only let administrators through; use below ``login_required``"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_admin:
            raise Unauthorized("Administrator access required")
        return f(*args, **kwargs)

    return decorated_function


def _wager_with_match(wager, matches):
    match = matches.get(wager.match_id)
    data = wager.to_dict()
    data["outcome"] = wager.outcome_for(match)
    data["match"] = match.to_dict() if match else None
    return data


@bp.route("/health")
@limiter.exempt
def health():
    """Health check endpoint - exempt from rate limiting for monitoring systems"""
    storage = get_storage()
    storage.ping()
    return jsonify(
        {
            "status": "healthy",
            "storage": storage.name,
            "connections": get_connection_stats()["total_connections"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


# Matches


@cached_route(timeout=60, key_prefix="matches", model_name="matches")
def _stored_matches():
    """Every match as stored, until a match is created or settled"""
    return [m.to_dict() for m in match_service.list_matches(include_past=True)]


@bp.route("/matches")
@login_required
def matches():
    """Upcoming matches, or every match with ?all=1"""
    include_past = request.args.get("all", "0").lower() in ("1", "true", "yes")
    return jsonify(
        {
            "matches": match_service.refresh_schedule(
                _stored_matches(), include_past=include_past
            )
        }
    )


@bp.route("/matches/<int:match_id>")
@login_required
def match_detail(match_id):
    match = match_service.get_match(match_id)
    my_wager = wager_service.get_wager_for_match(current_user.id, match_id)

    data = match.to_dict()
    data["wager_counts"] = match_service.get_wager_counts(match)
    data["my_wager"] = my_wager.to_dict() if my_wager else None
    return jsonify(data)


@bp.route("/matches", methods=["POST"])
@login_required
@admin_required
def create_match():
    form = MatchForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    match = match_service.create_match(
        team1=sanitize_input(form.team1.data),
        team2=sanitize_input(form.team2.data),
        venue=sanitize_input(form.venue.data),
        match_date=form.match_date.data,
    )
    return jsonify(match.to_dict()), 201


@bp.route("/matches/<int:match_id>/winner", methods=["PUT"])
@login_required
@admin_required
def settle_match(match_id):
    """Declare, change or revoke the result of a match"""
    form = SettleMatchForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    winner = (form.winner.data or "").strip() or None
    match = settlement_service.settle_match(
        match_id, winner=winner, is_abandoned=form.is_abandoned.data
    )
    logger.info(
        f"Admin {current_user.username} settled match {match_id} "
        f"(winner={winner}, abandoned={form.is_abandoned.data})"
    )

    broadcast_match_settled(match, wager_service.list_wagers_for_match(match_id))

    return jsonify(
        {
            "match": match.to_dict(),
            "settlement": settlement_service.get_settlement_summary(match_id),
        }
    )


@bp.route("/matches/<int:match_id>/settlement")
@login_required
@admin_required
def match_settlement(match_id):
    return jsonify(settlement_service.get_settlement_summary(match_id))


@bp.route("/matches/<int:match_id>/wagers")
@login_required
@admin_required
def match_wagers(match_id):
    wagers = wager_service.list_wagers_for_match(match_id)
    users = {u.id: u for u in user_service.list_users()}
    data = []
    for wager in wagers:
        entry = wager.to_dict()
        user = users.get(wager.user_id)
        entry["username"] = user.username if user else None
        data.append(entry)
    return jsonify({"match_id": match_id, "wagers": data})


# Wagers


@bp.route("/wagers", methods=["POST"])
@login_required
@limiter.limit("30 per minute")
def place_wager():
    form = WagerForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    wager, created = wager_service.place_wager(
        current_user,
        form.match_id.data,
        form.selected_team.data.strip(),
        form.amount.data,
    )
    return jsonify({"wager": wager.to_dict(), "created": created}), (
        201 if created else 200
    )


@bp.route("/wagers/<int:wager_id>", methods=["PUT"])
@login_required
@limiter.limit("30 per minute")
def update_wager(wager_id):
    form = WagerUpdateForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    wager = wager_service.update_wager(
        current_user, wager_id, form.selected_team.data.strip(), form.amount.data
    )
    return jsonify({"wager": wager.to_dict()})


@bp.route("/wagers")
@login_required
def my_wagers():
    """Current user's wagers with their match and outcome"""
    wagers = wager_service.list_wagers_for_user(current_user.id)
    matches = {m.id: m for m in match_service.list_matches(include_past=True)}
    return jsonify({"wagers": [_wager_with_match(w, matches) for w in wagers]})


@bp.route("/wagers/match/<int:match_id>")
@login_required
def my_wager_for_match(match_id):
    wager = wager_service.get_wager_for_match(current_user.id, match_id)
    return jsonify({"wager": wager.to_dict() if wager else None})


# Leaderboard


@bp.route("/leaderboard")
@login_required
def leaderboard():
    return jsonify({"leaderboard": leaderboard_service.project_leaderboard()})


# Users


@bp.route("/users")
@login_required
@admin_required
def users():
    return jsonify({"users": [u.to_dict() for u in user_service.list_users()]})


@bp.route("/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    form = UserCreateForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    user = user_service.create_user(
        username=form.username.data,
        password=form.password.data,
        full_name=sanitize_input(form.full_name.data),
        role=form.role.data or "user",
    )
    logger.info(f"Admin {current_user.username} created user {user.username}")
    return jsonify({"user": user.to_dict()}), 201


@bp.route("/users/<int:user_id>/deactivate", methods=["PUT"])
@login_required
@admin_required
def deactivate_user(user_id):
    if user_id == current_user.id:
        raise Unauthorized("You cannot deactivate your own account")

    user = user_service.deactivate_user(user_id)
    logger.info(f"Admin {current_user.username} deactivated user {user_id}")
    return jsonify({"user": user.to_dict()})
