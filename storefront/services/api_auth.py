# storefront/services/api_auth.py
from __future__ import annotations

import secrets
import threading
import time

from werkzeug.security import check_password_hash, generate_password_hash

from ..extensions import db
from ..model import API_PERMISSIONS, RATE_LIMIT_TIERS, ApiCredential
from ..utils.dates import parse_iso8601, utcnow
from ..utils.errors import NotFound, ServiceError

KEY_PREFIX = "sk_"


class ApiAuthError(ServiceError):
    status = 401


class FixedWindowRateLimiter:
    """
    Per-key request counter over fixed windows (one hour by default).
    In-process only; each worker keeps its own counts.
    """

    def __init__(self, window_seconds: int = 3600):
        self.window = window_seconds
        self._buckets: dict = {}
        self._lock = threading.Lock()

    def hit(self, key, limit: int, now: float | None = None) -> tuple[bool, int, int]:
        """Count one request. Returns (allowed, remaining, reset_epoch)."""
        now = time.time() if now is None else now
        with self._lock:
            count, reset_at = self._buckets.get(key, (0, 0))
            if now >= reset_at:
                count, reset_at = 0, now + self.window
            if count >= limit:
                self._buckets[key] = (count, reset_at)
                return False, 0, int(reset_at)
            count += 1
            self._buckets[key] = (count, reset_at)
            # drop expired buckets once the table grows
            if len(self._buckets) > 10000:
                self._buckets = {k: v for k, v in self._buckets.items() if v[1] > now}
            return True, max(limit - count, 0), int(reset_at)


def generate_credentials() -> tuple[str, str]:
    return KEY_PREFIX + secrets.token_hex(20), secrets.token_hex(32)


def parse_bearer(header: str | None) -> tuple[str, str]:
    if not header or not header.startswith("Bearer "):
        raise ApiAuthError(
            "API key required. Use Authorization: Bearer <api_key>:<api_secret>",
            code="UNAUTHORIZED",
        )
    token = header[len("Bearer "):].strip()
    api_key, _, api_secret = token.partition(":")
    if not api_key or not api_secret:
        raise ApiAuthError("Invalid API credentials format. Use api_key:api_secret", code="INVALID_CREDENTIALS")
    return api_key, api_secret


def authenticate(header: str | None, now=None) -> ApiCredential:
    api_key, api_secret = parse_bearer(header)
    cred = ApiCredential.query.filter_by(api_key=api_key, is_active=True).first()
    if not cred:
        raise ApiAuthError("Invalid API key", code="INVALID_API_KEY")
    if cred.expires_at and (now or utcnow()) > cred.expires_at:
        raise ApiAuthError("API credentials have expired", code="EXPIRED_CREDENTIALS")
    if not check_password_hash(cred.secret_hash, api_secret):
        raise ApiAuthError("Invalid API secret", code="INVALID_SECRET")
    return cred


def create_credential(tenant_id: int, data: dict, user_id: int | None = None) -> tuple[ApiCredential, str]:
    name = (data.get("name") or "").strip()
    if not name:
        raise ServiceError("name is required")

    permissions = data.get("permissions") or []
    if not isinstance(permissions, list) or not permissions:
        raise ServiceError("select at least one permission")
    unknown = [p for p in permissions if p != "*" and p not in API_PERMISSIONS]
    if unknown:
        raise ServiceError(f"unknown permissions: {', '.join(map(str, unknown))}")

    try:
        rate_limit = int(data.get("rate_limit") or 1000)
    except (TypeError, ValueError):
        raise ServiceError("rate_limit must be an integer")
    if rate_limit not in RATE_LIMIT_TIERS:
        raise ServiceError(f"rate_limit must be one of {', '.join(map(str, RATE_LIMIT_TIERS))}")

    expires_at = None
    if data.get("expires_at"):
        expires_at = parse_iso8601(data.get("expires_at"))
        if expires_at is None:
            raise ServiceError("Invalid datetime format for expires_at")

    api_key, secret = generate_credentials()
    cred = ApiCredential(
        tenant_id=tenant_id,
        user_id=user_id,
        name=name,
        api_key=api_key,
        secret_hash=generate_password_hash(secret),
        permissions=sorted(set(permissions)),
        rate_limit=rate_limit,
        is_active=True,
        expires_at=expires_at,
    )
    db.session.add(cred)
    db.session.commit()
    return cred, secret


def revoke(tenant_id: int, credential_id: int) -> ApiCredential:
    cred = ApiCredential.query.filter_by(tenant_id=tenant_id, id=credential_id).first()
    if not cred:
        raise NotFound("credential not found")
    cred.is_active = False
    db.session.commit()
    return cred
