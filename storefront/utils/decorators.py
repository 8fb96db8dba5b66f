# ------- storefront/utils/decorators.py -------
import logging
import time
from functools import wraps

from flask import current_app, g, make_response, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..model import User
from ..services.api_auth import authenticate
from .api import err
from .dates import utcnow
from .errors import ServiceError
from .net import get_client_ip

log = logging.getLogger(__name__)

ROLE_LEVEL = {"user": 1, "manager": 2, "admin": 3}


def _current_user():
    verify_jwt_in_request()
    uid = get_jwt_identity()
    try:
        uid = int(uid)
    except (TypeError, ValueError):
        uid = None
    return db.session.get(User, uid) if uid else None


def role_required(*roles, message: str | None = None):
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return err("Unauthorized", 401)
            if u.role not in roles:
                return err(message or "Forbidden", 403)
            g.user = u
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def role_at_least(min_role: str, message: str | None = None):  # admin > manager > user
    min_level = ROLE_LEVEL[min_role]
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            u = _current_user()
            if not u:
                return err("Unauthorized", 401)
            if ROLE_LEVEL.get(u.role, 0) < min_level:
                return err(message or "Forbidden", 403)
            g.user = u
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def tenant_id() -> int:
    """Tenant of the user authenticated by role_required / role_at_least."""
    return g.user.tenant_id


def api_credential_required(permission: str | None = None):
    """
    Public integration API guard: Bearer <api_key>:<api_secret>, hourly rate
    limit per credential, then the permission check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            cred = authenticate(request.headers.get("Authorization"))

            limiter = current_app.extensions["rate_limiter"]
            allowed, remaining, reset_at = limiter.hit(cred.id, cred.rate_limit)
            rl_headers = {
                "X-RateLimit-Limit": str(cred.rate_limit),
                "X-RateLimit-Remaining": str(remaining),
                "X-RateLimit-Reset": str(reset_at),
            }
            if not allowed:
                log.warning("rate limit exceeded for credential %s", cred.id)
                resp = err(f"Rate limit of {cred.rate_limit} requests per hour exceeded", 429,
                           code="RATE_LIMIT_EXCEEDED")
                resp.headers.update(rl_headers)
                return resp
            if permission and not cred.allows(permission):
                resp = err(f"Permission '{permission}' required", 403, code="INSUFFICIENT_PERMISSIONS")
                resp.headers.update(rl_headers)
                return resp

            cred.last_used_at = utcnow()
            db.session.commit()
            g.api_credential = cred

            try:
                rv = fn(*args, **kwargs)
            except ServiceError as e:
                # keep the rate-limit headers on error responses too
                db.session.rollback()
                rv = err(e.message, e.status, e.data, e.code)
            resp = make_response(rv)
            resp.headers.update(rl_headers)
            log.info(
                "api %s %s -> %s credential=%s tenant=%s ip=%s %.1fms",
                request.method, request.path, resp.status_code, cred.id, cred.tenant_id,
                get_client_ip(), (time.perf_counter() - started) * 1000,
            )
            return resp
        return wrapper
    return decorator
