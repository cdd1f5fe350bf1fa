from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity, get_jwt
from library_app.services.auth_service import AuthService

auth_bp = Blueprint("auth", __name__)

@auth_bp.post("/register", endpoint="auth_register")
def register():
    data = request.get_json(silent=True) or {}

    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip()
    password = (data.get("password") or "").strip()
    name = (data.get("name") or username).strip()

    if not username or not email or not password:
        return jsonify({"success": False, "message": "username/email/password are required"}), 400

    try:
        # self-signup is always a member account
        user = AuthService.register_member(username=username, email=email, password=password, name=name)
        return jsonify({
            "success": True,
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "member_id": user.member_id,
        }), 201
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 400


@auth_bp.post("/login", endpoint="auth_login")
def login():
    data = request.get_json(silent=True) or {}
    try:
        token, user = AuthService.login(
            (data.get("username") or "").strip(),
            (data.get("password") or "").strip()
        )
        return jsonify({
            "success": True,
            "access_token": token,
            "user": {"id": user.id, "username": user.username, "role": user.role, "member_id": user.member_id}
        })
    except ValueError as e:
        return jsonify({"success": False, "message": str(e)}), 401


@auth_bp.get("/me", endpoint="auth_me")
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    claims = get_jwt()
    user = AuthService.get_user(user_id)
    if not user:
        return jsonify({"success": False, "message": "User not found"}), 404

    return jsonify({
        "success": True,
        "user": {
            "id": user.id,
            "username": user.username,
            "email": user.email,
            "role": claims.get("role", user.role),
            "member_id": user.member_id,
        }
    })
