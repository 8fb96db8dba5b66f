import os
from datetime import timedelta


def _env_list(name, default=""):
    return [x.strip().lower() for x in os.getenv(name, default).split(",") if x.strip()]


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # storefront / tenant routing
    DEFAULT_STORE = os.getenv("DEFAULT_STORE", "demo")
    DEV_HOSTS = _env_list("DEV_HOSTS", "localhost,127.0.0.1")

    # money
    CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "R$")
    SHIPPING_FREE_THRESHOLD = os.getenv("SHIPPING_FREE_THRESHOLD", "199.00")
    SHIPPING_FLAT_FEE = os.getenv("SHIPPING_FLAT_FEE", "15.90")
    API_TZ_OFFSET_HOURS = int(os.getenv("API_TZ_OFFSET_HOURS", "-3"))  # America/Sao_Paulo

    # public integration API
    API_RATE_LIMIT_WINDOW = int(os.getenv("API_RATE_LIMIT_WINDOW", "3600"))

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
    LOG_LEVEL = "WARNING"

    @staticmethod
    def init_app(app):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
