from flask import Flask, request, make_response, jsonify
from flask_socketio import SocketIO
from config.settings import Config, STORAGE_DIR
from config.database import db, migrate
import logging
import os

logger = logging.getLogger(__name__)

CORS_METHODS = 'GET,POST,OPTIONS'
CORS_HEADERS = 'Content-Type,Authorization'


def _apply_cors(response, allowed_origins):
    origin = request.headers.get('Origin')
    if origin and origin in allowed_origins:
        response.headers['Access-Control-Allow-Origin'] = origin
        response.headers['Access-Control-Allow-Credentials'] = 'true'
        response.headers['Vary'] = 'Origin'
    response.headers['Access-Control-Allow-Methods'] = CORS_METHODS
    response.headers['Access-Control-Allow-Headers'] = CORS_HEADERS
    return response


def create_app(config_object=Config):
    """Build the Flask app, its Socket.IO server and the chat handlers."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    allowed_origins = set(app.config.get('CORS_ALLOWED_ORIGINS') or [])

    # init_app stores the instance under app.extensions['socketio']
    SocketIO(
        app,
        cors_allowed_origins=list(allowed_origins) or '*',
        message_queue=app.config.get('SOCKETIO_MESSAGE_QUEUE'),
    )

    @app.before_request
    def handle_preflight():
        # Respond to preflight OPTIONS requests with CORS headers immediately.
        if request.method == 'OPTIONS':
            return _apply_cors(make_response(), allowed_origins)

    @app.after_request
    def add_cors_headers(response):
        return _apply_cors(response, allowed_origins)

    db.init_app(app)
    migrate.init_app(app, db)

    # Register blueprints
    from routes.chat import chat_bp
    from routes.health import health_bp
    app.register_blueprint(chat_bp)
    app.register_blueprint(health_bp)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'status': 'error', 'message': 'Route not found'}), 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error on %s %s: %s", request.method, request.path, e)
        return jsonify({'status': 'error', 'message': 'Something went wrong!'}), 500

    with app.app_context():
        # Import models so SQLAlchemy metadata is populated before create_all
        from models.user_model import User  # noqa: F401
        from models.message_model import ChatMessage  # noqa: F401
        from models.message_reaction_model import MessageReaction  # noqa: F401
        if app.config['SQLALCHEMY_DATABASE_URI'].startswith(f'sqlite:///{STORAGE_DIR}'):
            os.makedirs(STORAGE_DIR, exist_ok=True)
        db.create_all()

    # Register socket events
    from sockets.chat_events import register_chat_events
    app.extensions['chat_registry'] = register_chat_events(app.extensions['socketio'])
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    port = int(os.environ.get('BACKEND_PORT', '5000'))
    host = os.environ.get('BACKEND_HOST', '0.0.0.0')
    logger.info("Starting campus chat on %s:%s room=%s", host, port, app.config['CHAT_ROOM'])
    # Newer Flask-SocketIO versions raise an error when running with the
    # Werkzeug dev server. For local development we allow it explicitly.
    app.extensions['socketio'].run(app, host=host, port=port, debug=False, allow_unsafe_werkzeug=True)
