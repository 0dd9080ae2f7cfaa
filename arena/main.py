import logging
import os

from flask import Flask
from flask_limiter.errors import RateLimitExceeded

from .config import CONFIGS
from .extensions import db, migrate, jwt, ma, cors, limiter, bcrypt


def create_app(config_name=None, config_overrides=None):
    app = Flask(__name__, instance_relative_config=False)
    env = config_name or os.getenv("FLASK_ENV", "development")
    app.config.from_object(CONFIGS.get(env, CONFIGS["development"]))
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("arena").setLevel(app.config["LOG_LEVEL"])
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    ma.init_app(app)
    origins = [o.strip() for o in app.config["CORS_ORIGINS"].split(",")]
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    bcrypt.init_app(app)
    limiter.init_app(app)

    # models must be imported before create_all / migrations
    from arena.models import (  # noqa: F401
        user, ledger_transaction, deposit_request, withdrawal_request,
        conversion_rate, tournament, registration, notification, token_blocklist,
    )
    from arena.services.auth_service import is_token_revoked

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return is_token_revoked(jwt_payload["jti"])

    # register blueprints
    from arena.routes.auth_routes import bp as auth_bp
    from arena.routes.profile_routes import bp as profile_bp
    from arena.routes.wallet_routes import bp as wallet_bp
    from arena.routes.admin_wallet_routes import bp as admin_wallet_bp
    from arena.routes.admin_user_routes import bp as admin_users_bp
    from arena.routes.tournament_routes import bp as tournament_bp
    from arena.routes.rpc_routes import bp as rpc_bp
    from arena.routes.storage_routes import bp as storage_bp
    from arena.routes.notification_routes import bp as notification_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(profile_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(admin_wallet_bp)
    app.register_blueprint(admin_users_bp)
    app.register_blueprint(tournament_bp)
    app.register_blueprint(rpc_bp)
    app.register_blueprint(storage_bp)
    app.register_blueprint(notification_bp)

    from arena.commands import register_commands
    register_commands(app)

    # error handlers to match required error format
    from arena.utils.exceptions import ServiceError
    from arena.utils.response_formatter import error_response, service_error_response

    @app.errorhandler(ServiceError)
    def service_error(e):
        return service_error_response(e)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response("TOKEN_EXPIRED", "Token has expired", status=401)

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_response("TOKEN_REVOKED", "Token has been revoked", status=401)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response("UNAUTHORIZED", reason, status=401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response("UNAUTHORIZED", reason, status=401)

    @app.errorhandler(400)
    def bad_request(e):
        return error_response("BAD_REQUEST", str(e), status=400)

    @app.errorhandler(401)
    def unauthorized(e):
        return error_response("UNAUTHORIZED", str(e), status=401)

    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(413)
    def too_large(e):
        return error_response("FILE_TOO_LARGE", "Upload exceeds the size limit", status=413)

    @app.errorhandler(RateLimitExceeded)
    def rate_limited(e):
        return error_response(
            "RATE_LIMITED",
            "Too many submissions. Please wait a minute before trying again.",
            {"limit": str(e.description)},
            status=429,
        )

    @app.errorhandler(500)
    def server_error(e):
        return error_response("SERVER_ERROR", "Internal server error", status=500)

    return app
