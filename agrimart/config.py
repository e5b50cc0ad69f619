import os
from datetime import timedelta


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # payment gateway: "cashfree" talks to the real API, "fake" keeps everything in memory
    PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "fake")
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
    PAYMENT_GATEWAY_TIMEOUT = _env_int("PAYMENT_GATEWAY_TIMEOUT", 30)
    CF_BASE_URL = os.getenv("CF_BASE_URL", "https://sandbox.cashfree.com/pg/orders")
    CF_CLIENT_ID = os.getenv("CF_CLIENT_ID", "")
    CF_CLIENT_SECRET = os.getenv("CF_CLIENT_SECRET", "")
    CF_API_VERSION = os.getenv("CF_API_VERSION", "2023-08-01")

    # bill rules
    FREE_SHIPPING_ABOVE = _env_int("FREE_SHIPPING_ABOVE", 500)
    SHIPPING_FEE = _env_int("SHIPPING_FEE", 50)
    RETURN_WINDOW_DAYS = _env_int("RETURN_WINDOW_DAYS", 7)

    # chat/support routing target, used to be a literal admin id
    SUPPORT_ADMIN_ID = os.getenv("SUPPORT_ADMIN_ID")

    OUTBOX_MAX_ATTEMPTS = _env_int("OUTBOX_MAX_ATTEMPTS", 5)
    OUTBOX_BACKOFF_SECONDS = _env_int("OUTBOX_BACKOFF_SECONDS", 30)

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'agrimart.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    ENV = "testing"
    JWT_SECRET_KEY = "test-secret-with-enough-length-for-hs256"
    PAYMENT_GATEWAY = "fake"
    CF_CLIENT_SECRET = "test-webhook-secret"
    OUTBOX_BACKOFF_SECONDS = 0

    @staticmethod
    def init_app(app):
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
