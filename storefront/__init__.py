# --- storefront/__init__.py ---
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate
from .services.api_auth import FixedWindowRateLimiter
from .utils.api import err
from .utils.errors import register_error_handlers

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    # app.logger is the "storefront" logger; module loggers propagate into it
    app.logger.handlers[:] = [handler]
    app.logger.setLevel(level)


def _register_jwt_handlers():
    @jwt.unauthorized_loader
    def _missing_token(reason):
        return err(reason, 401, code="unauthorized")

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return err(reason, 401, code="invalid_token")

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return err("Token has expired", 401, code="token_expired")


def create_app(config_class=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    config_class.init_app(app)
    _configure_logging(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/api/*": {"origins": "*"}}, expose_headers=[
        "X-Cart-Id", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset",
    ])
    migrate.init_app(app, db)
    app.extensions["rate_limiter"] = FixedWindowRateLimiter(app.config["API_RATE_LIMIT_WINDOW"])

    register_error_handlers(app)
    _register_jwt_handlers()

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .public import bp as public_bp; app.register_blueprint(public_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .gift_card import bp as gift_card_bp; app.register_blueprint(gift_card_bp)
    from .shipping import bp as shipping_bp; app.register_blueprint(shipping_bp)
    from .credentials import bp as credentials_bp; app.register_blueprint(credentials_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .public_api import bp as public_api_bp; app.register_blueprint(public_api_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        db.create_all()

    app.logger.info("storefront api ready (%d routes)", len(list(app.url_map.iter_rules())))
    return app
