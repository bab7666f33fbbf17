"""Flask application factory."""
from flask import Flask, render_template, request, redirect, flash, jsonify
from flask_wtf.csrf import CSRFProtect
from werkzeug.exceptions import HTTPException
from servicedesk.database import init_db

# Blueprints whose clients always expect JSON errors
JSON_BLUEPRINTS = {'quotes', 'services'}


def _wants_json():
    return request.is_json or request.blueprint in JSON_BLUEPRINTS


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        if _wants_json():
            return jsonify({'status': 'error', 'message': 'La sesión ha expirado. Recarga la página.'}), 400
        flash('Tu sesión ha expirado o el formulario es inválido. Por favor intenta de nuevo.', 'warning')
        return redirect(request.referrer or '/')

    # Sentry error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            send_default_pii=False
        )

    # Prometheus metrics instrumentation
    from servicedesk.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Jinja filters for es-MX formatting
    from servicedesk.utils.formatters import money_mx, date_mx
    app.jinja_env.filters['money_mx'] = money_mx
    app.jinja_env.filters['date_mx'] = date_mx

    from servicedesk.middleware import load_owner

    @app.before_request
    def before_request_handler():
        """Load the owner context for each request."""
        load_owner()

    # Error Handlers
    from servicedesk.exceptions import ServiceDeskError

    @app.errorhandler(ServiceDeskError)
    def handle_service_desk_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"ServiceDeskError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"ServiceDeskError [{error.status_code}]: {error.message}")

        if _wants_json():
            return jsonify(error.to_dict()), error.status_code

        if error.status_code == 404:
            return render_template('errors/404.html'), 404

        flash(error.message, 'danger')
        return redirect(request.referrer or '/')

    @app.errorhandler(404)
    def not_found_error(error):
        if _wants_json():
            return jsonify({'status': 'error', 'message': 'Not Found'}), 404
        return render_template('errors/404.html'), 404

    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return error

        app.logger.exception(f"Unhandled Exception: {error}")

        if _wants_json():
            return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500
        return render_template('errors/500.html'), 500

    # Register blueprints
    from servicedesk.blueprints.main import main_bp
    from servicedesk.blueprints.quotes import quotes_bp
    from servicedesk.blueprints.services import services_bp
    from servicedesk.blueprints.tracking import tracking_bp
    from servicedesk.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(quotes_bp)
    app.register_blueprint(services_bp)
    app.register_blueprint(tracking_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from servicedesk.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
