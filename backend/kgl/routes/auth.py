# Overview: Flask API routes for login, logout and the current session.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..services import auth_service, session_service
from ..validation import json_body
from kgl.time_utils import to_utc_z


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate a user and create a session token.

    Request body:
    {
        "username": "manager1",
        "password": "Password123"
    }

    Returns:
        {user, token, expires_at}
    """
    data = json_body()
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""

    if not username or not password:
        return jsonify({"error": "username and password required", "kind": "validation_error", "details": {}}), 400

    user = auth_service.authenticate(username, password)
    if not user:
        current_app.logger.warning("Failed login for %s from %s", username, request.remote_addr)
        return jsonify({"error": "Invalid credentials", "kind": "unauthorized", "details": {}}), 401

    session, token = session_service.create_session(user.id)
    current_app.logger.info("User logged in: %s (%s)", user.username, user.role)

    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the presented session token."""
    session_service.revoke_session(g.session_token, reason="User logout")
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "branch": user.branch.to_dict() if user.branch else None,
    }), 200
