# storefront/utils/tenant.py
from flask import current_app, request

from ..model import Tenant
from .errors import NotFound

STORE_PATH_PREFIX = "storefront"


def resolve_subdomain(host, path=None, default=None, dev_hosts=("localhost", "127.0.0.1")):
    """
    Work out which store a request targets.

    Order:
      1) /storefront/<sub>/... path prefix
      2) development hosts -> default
      3) dotted host -> first label ("www" is skipped)
      4) bare host (custom domain) as-is
    """
    if path:
        parts = [p for p in path.split("/") if p]
        if len(parts) >= 2 and parts[0] == STORE_PATH_PREFIX:
            return parts[1].lower()

    host = (host or "").strip().lower()
    if host.startswith("[") and "]" in host:  # ipv6 literal
        host = host[1:host.index("]")]
    elif ":" in host:
        host = host.rsplit(":", 1)[0]

    if not host or host in dev_hosts:
        return default

    labels = host.split(".")
    if len(labels) > 1:
        if labels[0] == "www" and len(labels) > 2:
            return labels[1]
        return labels[0]
    return host


def request_subdomain():
    explicit = request.headers.get("X-Store") or request.args.get("store")
    if explicit:
        return explicit.strip().lower()
    cfg = current_app.config
    return resolve_subdomain(
        request.host,
        request.path,
        default=cfg.get("DEFAULT_STORE"),
        dev_hosts=tuple(cfg.get("DEV_HOSTS") or ()),
    )


def tenant_by_subdomain(subdomain) -> Tenant:
    sub = (subdomain or "").strip().lower()
    tenant = Tenant.query.filter_by(subdomain=sub, is_active=True).first() if sub else None
    if not tenant:
        raise NotFound(f"store '{sub}' not found or inactive", code="tenant_not_found")
    return tenant


def current_tenant() -> Tenant:
    return tenant_by_subdomain(request_subdomain())
