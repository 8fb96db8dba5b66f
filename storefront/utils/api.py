# --- storefront/utils/api.py ---
from datetime import datetime, timedelta, timezone
from flask import current_app, has_app_context, jsonify


def _api_time():
    offset = current_app.config.get("API_TZ_OFFSET_HOURS", 0) if has_app_context() else 0
    now = datetime.now(timezone.utc) + timedelta(hours=offset)
    return now.strftime("%Y-%m-%d %H:%M:%S")


def api_ok(message, data=None):
    return {
        "status": True,
        "message": message,
        "data": data if data is not None else {},
        "api_time": _api_time(),
    }


def api_error(message, data=None, code=None):
    body = {
        "status": False,
        "message": message,
        "data": data if data is not None else {},
        "api_time": _api_time(),
    }
    if code:
        body["error"] = code
    return body


# ---- response helpers ------------------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r


def err(msg, status=400, data=None, code=None):
    r = jsonify(api_error(msg, data, code)); r.status_code = status; return r
