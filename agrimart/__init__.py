# --- agrimart/__init__.py ---
import logging

from flask import Flask, jsonify

from .config import Config
from .extensions import db, jwt, cors, migrate


def create_app(config_object=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    config_object.init_app(app)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": "*"}})
    migrate.init_app(app, db)

    from .gateway import init_gateway; init_gateway(app)
    from .errors import register_error_handlers; register_error_handlers(app)

    # Register blueprints
    from .product import bp as product_bp; app.register_blueprint(product_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .coin import bp as coin_bp; app.register_blueprint(coin_bp)
    from .payment import bp as payment_bp; app.register_blueprint(payment_bp)

    from .cli import register_cli; register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401
        if not app.config.get("TESTING"):
            db.create_all()

    return app
