'''Flask app assembly: config, blueprints, error handlers.
Does not start the server and does not touch the database (see run.py).
Used by run.py, WSGI servers and the tests.'''
# sekisan/app_factory.py
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

from sekisan.exceptions import SekisanError
from sekisan.logger import get_logger

# environment from .env
load_dotenv()

logger = get_logger(__name__)

# project root (absolute)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def create_app(test_config=None):
    """Application factory."""
    app = Flask(__name__)

    # database URL is read from the environment by sekisan.db.session
    default_db_url = f"sqlite:///{os.path.join(BASE_DIR, 'sekisan.db')}"
    os.environ.setdefault("DATABASE_URL", default_db_url)

    app.config['DATABASE_URL'] = os.environ["DATABASE_URL"]
    app.json.ensure_ascii = False
    app.json.sort_keys = False
    app.config['MAX_CONTENT_LENGTH'] = int(os.getenv('MAX_CONTENT_LENGTH', 10485760))  # 10MB

    if test_config:
        app.config.update(test_config)

    # blueprints
    from sekisan.routes.projects import project_bp
    from sekisan.routes.quantity_tables import quantity_table_bp
    from sekisan.routes.itemized_statements import itemized_statement_bp

    app.register_blueprint(project_bp)
    app.register_blueprint(quantity_table_bp)
    app.register_blueprint(itemized_statement_bp)

    register_error_handlers(app)

    return app


def register_error_handlers(app):
    """Every error is answered as JSON."""
    @app.errorhandler(SekisanError)
    def handle_domain_error(error: SekisanError):
        if error.status_code >= 500:
            logger.error(f"Domain error: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def handle_request_validation(error: ValidationError):
        field_errors = [
            {"field": ".".join(str(part) for part in e["loc"]), "message": e["msg"]}
            for e in error.errors()
        ]
        return jsonify({
            "status": "error",
            "code": "REQUEST_VALIDATION_ERROR",
            "message": "Invalid request body",
            "field_errors": field_errors,
        }), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({
            "status": "error",
            "code": error.name.upper().replace(" ", "_"),
            "message": error.description,
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        logger.exception(f"Unhandled error: {error}")
        return jsonify({"status": "error", "code": "INTERNAL_ERROR", "message": "An internal error occurred"}), 500
