from flask import Flask, jsonify
from flask_cors import CORS
from flask_login import LoginManager
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from marketplace.extensions import db, jwt
from marketplace.config import Config
import logging
import os

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(os.environ.get('LOG_FILE', 'app.log')),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    login_manager.init_app(app)
    CORS(
        app,
        origins=app.config['CORS_ORIGINS'],
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization'],
    )

    # Bearer token -> User / Seller
    from marketplace.middleware import load_principal_from_request

    login_manager.request_loader(load_principal_from_request)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'No token provided or token invalid'}), 401

    # Register blueprints
    from marketplace.blueprints import (
        admin,
        auth,
        bulk,
        cart,
        categories,
        complaints,
        dashboard,
        notifications,
        orders,
        products,
        reviews,
        upload,
    )

    # Blueprints use absolute /api routes.
    app.register_blueprint(auth.bp, url_prefix='/')
    app.register_blueprint(categories.bp, url_prefix='/')
    app.register_blueprint(products.bp, url_prefix='/')
    app.register_blueprint(cart.bp, url_prefix='/')
    app.register_blueprint(orders.bp, url_prefix='/')
    app.register_blueprint(reviews.bp, url_prefix='/')
    app.register_blueprint(complaints.bp, url_prefix='/')
    app.register_blueprint(notifications.bp, url_prefix='/')
    app.register_blueprint(admin.bp, url_prefix='/')
    app.register_blueprint(dashboard.bp, url_prefix='/')
    app.register_blueprint(bulk.bp, url_prefix='/')
    app.register_blueprint(upload.bp, url_prefix='/')

    register_error_handlers(app)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app


def register_error_handlers(app):

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'error': e.description or e.name}), e.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        logger.error("Unhandled database error: %s", e, exc_info=True)
        return jsonify({
            'error': 'Database error',
            'message': str(getattr(e, 'orig', None) or e),
            'code': getattr(e, 'code', None),
        }), 500
