import logging
import logging.config

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from ecgscan.errors import EcgScanError, TransportError
from ecgscan.extensions import db, migrate, cors, socketio, jwt, bcrypt
from ecgscan.extensions_firebase import init_firebase
from ecgscan.logging_utils import build_logging_config
from ecgscan.utils.response import error_from

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.config.dictConfig(build_logging_config(app.config.get("LOG_LEVEL", "INFO")))

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app, origins=app.config.get("CORS_ORIGINS", "*"))
    # Socket handlers must be imported before init_app so they are replayed on every app's server
    from ecgscan import socket_events  # noqa: F401
    socketio.init_app(app)
    jwt.init_app(app)
    bcrypt.init_app(app)

    # Firebase Admin: Firebase login and (optionally) the Storage bucket
    if app.config.get("FIREBASE_ENABLED"):
        init_firebase(app.config["FIREBASE_SERVICE_ACCOUNT"], app.config.get("FIREBASE_STORAGE_BUCKET"))

    from ecgscan.services.profile_directory import ProfileDirectory, UserProfileLookup
    from ecgscan.services.chat_channel import MessageBroker
    from ecgscan.services.storage_service import build_storage

    app.extensions["profile_directory"] = ProfileDirectory(UserProfileLookup())
    app.extensions["blob_storage"] = build_storage(app.config)
    app.extensions["message_broker"] = MessageBroker()

    # Models must be imported before create_all
    from ecgscan.models import user, ecg, chat  # noqa: F401

    with app.app_context():
        db.create_all()

    # Register blueprints
    from ecgscan.routes.auth_routes import auth_bp
    from ecgscan.routes.record_routes import record_bp
    from ecgscan.routes.laudation_routes import laudation_bp
    from ecgscan.routes.chat_routes import chat_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(record_bp)
    app.register_blueprint(laudation_bp)
    app.register_blueprint(chat_bp)

    @app.errorhandler(EcgScanError)
    def handle_domain_error(e):
        return error_from(e)

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(e):
        db.session.rollback()
        logger.error("store failure: %s", e)
        return error_from(TransportError("Record store unavailable"))

    @app.route("/")
    def index():
        return "ECG triage backend is running!"

    return app
