import logging

from flask import jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from app import limiter
from app.forms.auth import LoginForm, RegistrationForm, sanitize_input
from app.routes import form_error_response
from app.routes.auth import bp
from app.services import user_service

logger = logging.getLogger(__name__)


@bp.route("/csrf-token")
def csrf_token():
    """Token JSON clients send back in the X-CSRFToken header"""
    return jsonify({"csrf_token": generate_csrf()})


@bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    user = user_service.authenticate(form.username.data, form.password.data)
    if user is None:
        logger.info(f"Failed login for {form.username.data}")
        return (
            jsonify(
                {
                    "error": "invalid_credentials",
                    "message": "Invalid username or password.",
                }
            ),
            401,
        )

    if not user.is_active:
        return (
            jsonify(
                {
                    "error": "account_deactivated",
                    "message": "Your account has been deactivated. Please contact an administrator.",
                }
            ),
            403,
        )

    login_user(user, remember=form.remember_me.data)
    user_service.record_login(user)
    logger.info(f"User {user.username} logged in")
    return jsonify({"user": user.to_dict()})


@bp.route("/register", methods=["POST"])
@limiter.limit("5 per hour")
def register():
    form = RegistrationForm()
    if not form.validate_on_submit():
        return form_error_response(form)

    user = user_service.create_user(
        username=form.username.data,
        password=form.password.data,
        full_name=sanitize_input(form.full_name.data),
    )
    login_user(user)
    return jsonify({"user": user.to_dict()}), 201


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logger.info(f"User {current_user.username} logged out")
    logout_user()
    return jsonify({"message": "You have been logged out successfully."})


@bp.route("/user")
@login_required
def user():
    return jsonify({"user": current_user.to_dict()})
