from flask import Flask, jsonify
import logging
import os

from quizhub.config import Config
from quizhub.extensions import mongo, jwt, cors
from quizhub.routes import quizzes
from quizhub.commands import register_commands

logger = logging.getLogger(__name__)


def create_app(config_overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"])

    mongo.init_app(app, uri=app.config["MONGO_URI"])
    if app.config.get("DB_NAME"):
        mongo.db = mongo.cx[app.config["DB_NAME"]]

    jwt.init_app(app)
    cors.init_app(app, supports_credentials=True)

    app.register_blueprint(quizzes.router, url_prefix=app.config["QUIZ_URL_PREFIX"])
    register_commands(app)

    @app.route("/", methods=["GET"])
    def root():
        return jsonify({"msg": "Backend is running"})

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"message": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error: %s", getattr(e, "original_exception", e), exc_info=True)
        return jsonify({"message": "Server error"}), 500

    return app


# Auth Gate rejections use the same {"message": ...} body as the routes
@jwt.unauthorized_loader
def missing_token(reason):
    logger.warning("Rejected request without token: %s", reason)
    return jsonify({"message": "Authorization token required"}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    logger.warning("Rejected request with invalid token: %s", reason)
    return jsonify({"message": "Invalid token"}), 401


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return jsonify({"message": "Token has expired"}), 401


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.getenv("PORT", 5000)))
