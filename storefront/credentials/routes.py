# storefront/credentials/routes.py
from flask import g, request

from . import bp
from ..model import API_PERMISSIONS, RATE_LIMIT_TIERS, ApiCredential
from ..services import api_auth
from ..utils.api import ok
from ..utils.decorators import role_at_least, tenant_id


@bp.post("")
@role_at_least("manager", message="Only managers and admins can create API credentials")
def create_credential():
    """
    Body: { "name", "permissions": [...], "rate_limit": 1000 | 5000 | 10000, "expires_at"? }
    The secret is returned once and stored hashed.
    """
    cred, secret = api_auth.create_credential(tenant_id(), request.get_json(silent=True) or {}, user_id=g.user.id)
    data = cred.as_api()
    data["api_secret"] = secret
    return ok("API credential created. Store the secret now, it will not be shown again.",
              {"credential": data}, status=201)


@bp.get("")
@role_at_least("user")
def list_credentials():
    items = (
        ApiCredential.query.filter_by(tenant_id=tenant_id())
        .order_by(ApiCredential.id.desc())
        .all()
    )
    return ok("ok", {
        "items": [c.as_api() for c in items],
        "available_permissions": list(API_PERMISSIONS),
        "rate_limit_tiers": list(RATE_LIMIT_TIERS),
    })


@bp.delete("/<int:credential_id>")
@role_at_least("manager")
def revoke_credential(credential_id):
    cred = api_auth.revoke(tenant_id(), credential_id)
    return ok("API credential revoked", {"credential": cred.as_api()})
