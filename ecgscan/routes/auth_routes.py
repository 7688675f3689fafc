import logging
import re
from datetime import timedelta

from flask import Blueprint, request
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from firebase_admin import auth as fb_auth

from ecgscan.extensions import db
from ecgscan.models.enums import Role, parse_enum
from ecgscan.models.user import User
from ecgscan.services.profile_directory import default_avatar
from ecgscan.services.session import commit_or_raise
from ecgscan.utils.response import success, created, error

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

# =========================
# CONFIG
# =========================
EMAIL_REGEX = r"^[\w\.-]+@[\w\.-]+\.\w+$"
TOKEN_EXPIRES = timedelta(days=30)


# =========================
# HELPERS
# =========================
def _validate_register_input(data: dict) -> list[str]:
    errors: list[str] = []

    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    username = (data.get("username") or "").strip()
    role = (data.get("role") or Role.NURSE.value).strip().lower()

    if not email:
        errors.append("Email is required.")
    elif not re.match(EMAIL_REGEX, email):
        errors.append("Email format is invalid.")

    if not password:
        errors.append("Password is required.")
    elif len(password) < 8:
        errors.append("Password must be at least 8 characters.")

    if not username:
        errors.append("Username is required.")
    elif len(username) > 100:
        errors.append("Username is too long (max 100).")

    if parse_enum(Role, role) is None:
        errors.append("Role must be nurse or physician.")

    return errors


def _issue_token(user: User) -> str:
    return create_access_token(identity=str(user.id), expires_delta=TOKEN_EXPIRES)


def _user_payload(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "role": user.role,
        "avatar_url": user.avatar_url or default_avatar(user.username),
        "joined_at": user.created_at.isoformat() if user.created_at else None,
    }


def _get_user_or_none(user_id_str: str):
    try:
        return db.session.get(User, int(user_id_str))
    except (TypeError, ValueError):
        return None


# =========================
# ROUTES
# =========================

@auth_bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    if not data:
        return error("No data sent", 400)

    validation_errors = _validate_register_input(data)
    if validation_errors:
        return error(validation_errors[0], 400, {"details": validation_errors})

    email = data["email"].strip().lower()
    username = data["username"].strip()
    role = (data.get("role") or Role.NURSE.value).strip().lower()

    if User.query.filter_by(email=email).first():
        return error("Email already registered, please log in.", 400)

    new_user = User(
        email=email,
        username=username,
        role=role,
        avatar_url=default_avatar(username),
        auth_provider="password",
    )
    new_user.set_password(data["password"])
    db.session.add(new_user)
    commit_or_raise("register user")
    logger.info("user %s registered as %s", new_user.id, new_user.role)

    return created(_user_payload(new_user), "Registration successful")


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}

    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        return error("Email and password are required", 400)

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return error("Wrong email or password", 401)

    return success({"token": _issue_token(user), "user": _user_payload(user)}, "Login successful")


@auth_bp.route("/firebase", methods=["POST"])
def firebase_login():
    """
    Firebase login:
    - client signs in with Firebase and sends Authorization: Bearer <id_token>
    - backend verifies it, maps it to a user (created on first sight as nurse)
    - backend issues its own JWT
    """
    h = request.headers.get("Authorization", "")
    if not h.startswith("Bearer "):
        return error("Missing Firebase token", 401)

    id_token = h.split(" ", 1)[1].strip()
    if not id_token:
        return error("Missing Firebase token", 401)

    try:
        decoded = fb_auth.verify_id_token(id_token, check_revoked=True)
    except (fb_auth.InvalidIdTokenError, fb_auth.CertificateFetchError, ValueError) as e:
        logger.info("firebase token rejected: %s", e)
        return error("Firebase token invalid/expired", 401)

    uid = decoded.get("uid")
    email = (decoded.get("email") or "").lower()
    name = (decoded.get("name") or decoded.get("displayName") or "").strip()
    picture = decoded.get("picture")

    if not uid:
        return error("Firebase token invalid", 401)
    if not email:
        return error("Firebase account has no email", 400)

    # uid first, then email (links a password account to firebase)
    user = User.query.filter_by(firebase_uid=uid).first()
    if not user:
        user = User.query.filter_by(email=email).first()

    if not user:
        username = name or email.split("@")[0]
        user = User(
            email=email,
            username=username,
            role=Role.NURSE.value,
            avatar_url=picture or default_avatar(username),
            firebase_uid=uid,
            auth_provider="firebase",
        )
        db.session.add(user)
        commit_or_raise("create firebase user")
        logger.info("firebase user %s created as nurse", user.id)
    else:
        changed = False
        if not user.firebase_uid:
            user.firebase_uid = uid
            changed = True
        if not user.auth_provider:
            user.auth_provider = "firebase"
            changed = True
        if picture and not user.avatar_url:
            user.avatar_url = picture
            changed = True
        if changed:
            commit_or_raise("link firebase user")

    return success({"token": _issue_token(user), "user": _user_payload(user)}, "Firebase login successful")


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def get_my_profile():
    user = _get_user_or_none(get_jwt_identity())
    if not user:
        return error("User not found", 404)
    return success(_user_payload(user), "Profile loaded")
