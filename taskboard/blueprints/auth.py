"""Auth blueprint — /auth/*

JSON session login for the board API. The rest of the API identifies the
viewer through Flask-Login's current_user.

Route Map:
  POST /auth/login   — Email + password, starts a session
  POST /auth/logout  — Ends the session
  GET  /auth/me      — Current user + role
"""

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_user, logout_user
from werkzeug.security import check_password_hash

from taskboard.blueprints import json_body
from taskboard.decorators import api_login_required
from taskboard.errors import Unauthenticated
from taskboard.extensions import limiter
from taskboard.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")

logger = logging.getLogger(__name__)


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    data = json_body(required=("email", "password"))
    email = str(data["email"]).lower().strip()
    password = str(data["password"])

    user = User.query.filter_by(email=email).first()
    if user is None or not check_password_hash(user.password_hash, password):
        logger.info(f"Failed login for {email}")
        raise Unauthenticated("Invalid email or password.")
    if not user.is_active:
        raise Unauthenticated("This account has been deactivated.")

    login_user(user, remember=bool(data.get("remember")))
    return jsonify(_me(user))


@auth_bp.route("/logout", methods=["POST"])
def logout():
    logout_user()
    return jsonify({"success": True})


@auth_bp.route("/me")
@api_login_required
def me():
    return jsonify(_me(current_user))


def _me(user):
    return {**user.summary(), "role": user.role}
