"""
Flask application for the PDF Merge service.

Builds the application, wires logging, error handling, CORS, rate limiting
and security headers around the API blueprint, and serves the browser UI.
"""
import os
import sys
import time
import logging
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from .config import Config
from .extensions import cors, limiter
from .routes import bp as api_bp
from .backend.errors import ErrorKind, MergeServiceError
from .backend.storage import TempStorage, format_size_limit

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(process)d] - %(message)s'

logger = logging.getLogger('pdf_merger')


def configure_logging(level='INFO'):
    """Send log records to stdout in the service's format."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)  # Log to stdout for Docker logs
        ]
    )
    logger.setLevel(level)
    logging.getLogger('pdf_merge_service').setLevel(level)


def create_app(config=None):
    """
    Create the Flask application.

    Args:
        config (dict, optional): Settings overriding the defaults from Config

    Returns:
        Flask: The configured application
    """
    app = Flask(__name__, static_folder='frontend')
    app.config.from_object(Config)
    if config:
        app.config.update(config)
        if 'MAX_FILE_SIZE' in config and 'MAX_CONTENT_LENGTH' not in config:
            app.config['MAX_CONTENT_LENGTH'] = (
                app.config['MAX_FILES'] * app.config['MAX_FILE_SIZE'] + 1024 * 1024
            )

    configure_logging(app.config['LOG_LEVEL'])

    app.extensions['temp_storage'] = TempStorage(
        app.config['STORAGE_DIR'], app.config['MAX_FILE_SIZE']
    )

    cors.init_app(app, resources={r'/api/*': {'origins': app.config['CORS_ORIGINS']}})
    limiter.init_app(app)

    app.register_blueprint(api_bp)
    register_hooks(app)
    register_error_handlers(app)

    @app.route('/')
    def index():
        """Serve the main page."""
        return app.send_static_file('index.html')

    log_app_info(app)
    return app


def log_app_info(app):
    """Log important application information at startup."""
    logger.info("Application started with configuration:")
    logger.info("Storage directory: %s", app.extensions['temp_storage'].directory)
    logger.info("Files per merge: %d-%d, max size %s each",
                app.config['MIN_FILES'], app.config['MAX_FILES'],
                format_size_limit(app.config['MAX_FILE_SIZE']))
    logger.info("Output expiry: %d seconds", app.config['OUTPUT_EXPIRY_SECONDS'])
    logger.info("Rate limiting enabled: %s", app.config['RATELIMIT_ENABLED'])
    logger.debug("Available routes: %s", [str(rule) for rule in app.url_map.iter_rules()])


def register_hooks(app):
    """Attach per-request cleanup, access logging and security headers."""

    @app.before_request
    def cleanup_expired_files():
        """Remove merged files nobody downloaded in time."""
        expiry = app.config['OUTPUT_EXPIRY_SECONDS']
        if expiry <= 0:
            return

        storage = app.extensions['temp_storage']
        current_time = time.time()
        # Don't run cleanup on every request
        if current_time - storage.last_sweep < app.config['CLEANUP_INTERVAL_SECONDS']:
            return
        storage.last_sweep = current_time
        storage.sweep_expired(expiry, current_time)

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers['Content-Security-Policy'] = (
            "default-src 'self'; "
            "script-src 'self' 'unsafe-inline'; "
            "style-src 'self' 'unsafe-inline'; "
            "img-src 'self' data:; "
            "connect-src 'self'; "
            "object-src 'none'"
        )
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'no-referrer'
        return response

    @app.after_request
    def log_request(response):
        logger.info(
            '%s "%s %s" %d %s',
            request.remote_addr, request.method, request.full_path.rstrip('?'),
            response.status_code, response.content_length or '-'
        )
        return response


def register_error_handlers(app):
    """Render every error as a JSON body of the form {"error": message}."""

    @app.errorhandler(MergeServiceError)
    def handle_merge_service_error(error):
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message)
        else:
            logger.warning("Request rejected (%s): %s", error.kind.value, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(_):
        max_size = format_size_limit(app.config['MAX_FILE_SIZE'])
        return handle_merge_service_error(MergeServiceError(
            ErrorKind.FILE_TOO_LARGE, f'File too large. Maximum size is {max_size}.'
        ))

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        logger.warning("HTTP error %d: %s", error.code, error.description)
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception("Unhandled error: %s", str(error))
        return jsonify({'error': 'Internal server error'}), 500


def main():
    """Run the development server."""
    app = create_app()
    # Use environment variables for host and port
    port = int(os.environ.get('PORT', 5000))
    host = os.environ.get('HOST', '0.0.0.0')
    logger.info("Health check: http://%s:%d/api/health", host, port)
    app.run(host=host, port=port, debug=os.environ.get('FLASK_ENV') == 'development')


if __name__ == '__main__':
    main()
