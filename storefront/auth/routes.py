from flask import g, request
from flask_jwt_extended import create_access_token, create_refresh_token, get_jwt_identity, jwt_required
from werkzeug.security import check_password_hash, generate_password_hash

from . import bp
from ..extensions import db
from ..model import User
from ..utils.api import err, ok
from ..utils.decorators import role_at_least, role_required, tenant_id

ROLES = {"user", "manager", "admin"}


def _issue_tokens(user: User):
    return create_access_token(identity=str(user.id)), create_refresh_token(identity=str(user.id))


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return err("Email and password are required", 400)
    user = User.query.filter_by(email=email).first()
    if not user or not check_password_hash(user.password_hash, password):
        return err("Invalid email or password", 401)
    if user.tenant and not user.tenant.is_active:
        return err("Store is inactive", 403)

    access_token, refresh_token = _issue_tokens(user)
    return ok("You've logged in successfully", {
        "user": user.as_dict(),
        "token": access_token,
        "refresh_token": refresh_token,
    })


@bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return err("user not found", 404)
    return ok("Token refreshed", {"token": create_access_token(identity=str(user.id))})


@bp.get("/me")
@role_at_least("user")
def me():
    return ok("me", {"user": g.user.as_dict()})


# ---- tenant staff ---------------------------------------------------------

@bp.get("/users")
@role_at_least("manager", message="Only managers and admins can list users")
def list_users():
    q = User.query.filter_by(tenant_id=tenant_id())
    if g.user.role == "manager":
        q = q.filter(User.role == "user")
    return ok("OK", {"users": [u.as_dict() for u in q.order_by(User.id.asc()).all()]})


@bp.post("/users")
@role_at_least("manager")
def create_user():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()
    if not email:
        return err("Email required", 400)
    if len(password) < 6:
        return err("Password required, min 6 chars", 400)
    if User.query.filter_by(email=email).first():
        return err("Email already registered", 409)

    role = (data.get("role") or "user").strip().lower()
    if role not in ROLES:
        return err("Invalid role", 400)
    if g.user.role == "manager":
        role = "user"  # managers can only create users

    user = User(tenant_id=tenant_id(), email=email, name=name,
                password_hash=generate_password_hash(password), role=role)
    db.session.add(user)
    db.session.commit()
    return ok("Account created successfully", {"user": user.as_dict()}, status=201)


def _tenant_user(user_id):
    target = db.session.get(User, user_id)
    if not target or target.tenant_id != tenant_id():
        return None
    return target


def _admin_count():
    return User.query.filter_by(tenant_id=tenant_id(), role="admin").count()


@bp.patch("/users/<int:user_id>/role")
@role_required("admin")
def update_user_role(user_id):
    body = request.get_json(silent=True) or {}
    new_role = (body.get("role") or "").strip().lower()
    if new_role not in ROLES:
        return err("Invalid role", 400)
    target = _tenant_user(user_id)
    if not target:
        return err("User not found", 404)
    # Prevent demoting the LAST admin
    if target.role == "admin" and new_role != "admin" and _admin_count() <= 1:
        return err("Cannot demote the last admin", 400)
    target.role = new_role
    db.session.commit()
    return ok("Role updated", {"user": target.as_dict()})


@bp.delete("/users/<int:user_id>")
@role_at_least("manager")
def delete_user(user_id):
    target = _tenant_user(user_id)
    if not target:
        return err("User not found", 404)
    # Managers can manage only users; admins can manage managers+users
    if g.user.role == "manager" and target.role != "user":
        return err("Forbidden: managers may delete users only", 403)
    if target.role == "admin" and _admin_count() <= 1:
        return err("Cannot delete the last admin", 400)
    db.session.delete(target)
    db.session.commit()
    return ok("User deleted")
