import logging # Standard library logging levels for the Flask logger.
import click # Flask's CLI is built on click.
from flask import Flask, jsonify # The main Flask class and JSON responses.
from config import Config # Import the application's configuration class.
from extensions import db, login_manager, migrate # Import initialized extensions.
from models.user import User # Import User model, primarily for the user_loader.
from services.errors import ServiceError # Base class of every business-rule rejection.

# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.
    This pattern is useful for creating multiple app instances (e.g., for testing)
    and avoids global app objects.

    Args:
        config_class: Configuration object to load. Tests pass a subclass with an in-memory database.
    """
    app = Flask(__name__)

    # Load configuration from the given config object (defaults to config.Config).
    app.config.from_object(config_class)

    # --- Logging ---
    # All modules log through current_app.logger; its level comes from LOG_LEVEL.
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # --- Initialize Flask Extensions ---
    # Initialize SQLAlchemy with the app (for database ORM).
    db.init_app(app)
    # Initialize Flask-Migrate for database schema migrations.
    # This links the Flask app and SQLAlchemy DB instance to the migration engine.
    migrate.init_app(app, db)

    # Initialize Flask-Login for user session management.
    login_manager.init_app(app)

    # --- Flask-Login User Loader ---
    # This callback is used by Flask-Login to reload the user object from the
    # user ID stored in the session. It's called on each request for an authenticated user.
    @login_manager.user_loader
    def load_user(user_id):
        """Loads a user from the database given their ID."""
        return db.session.get(User, int(user_id)) # Fetches user by primary key.

    # The API is consumed by a JSON client, so unauthenticated requests get a 401 instead of a redirect.
    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Authentication required.'}), 401

    # --- Error Handling ---
    # Services raise typed errors; each one maps to its HTTP status and a JSON body.
    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    # --- Import and Register Blueprints ---
    # Blueprints help organize routes and views into modular components.
    from routes.auth import auth_bp
    from routes.orders import orders_bp
    from routes.subscriptions import subscriptions_bp
    from routes.delivery import delivery_bp
    from routes.admin import admin_bp
    from routes.notifications import notifications_bp
    from routes.catalog import catalog_bp

    # Each blueprint carries its own URL prefix (/auth, /orders, /subscriptions, ...).
    app.register_blueprint(auth_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(delivery_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(catalog_bp) # No prefix: /menu, /addons, /settings/service-area.

    register_commands(app)

    return app # Return the configured Flask app instance.


# Default catalog written by `flask seed`.
DEFAULT_MENU_ITEMS = (
    {'name': 'CHICKEN', 'price': 320, 'protein_amount': 40, 'calories': 550, 'description': 'Grilled chicken meal'},
    {'name': 'PANEER', 'price': 300, 'protein_amount': 30, 'calories': 600, 'description': 'Paneer meal'},
)
DEFAULT_ADD_ONS = (
    {'name': 'Probiotic Kefir (275ml)', 'price': 99, 'allow_subscription': True, 'description': 'Fresh kefir, daily or one-off'},
)


def register_commands(app):
    """Registers the Flask CLI commands (`flask seed`)."""
    from models import AddOn, MenuItem
    from services.settings import seed_default_settings

    @app.cli.command('seed')
    def seed():
        """Creates tables and inserts default settings, menu items and add-ons that are missing."""
        db.create_all()
        settings_created = seed_default_settings()
        created = 0
        for item in DEFAULT_MENU_ITEMS:
            if MenuItem.query.filter_by(name=item['name']).first() is None:
                db.session.add(MenuItem(**item))
                created += 1
        for add_on in DEFAULT_ADD_ONS:
            if AddOn.query.filter_by(name=add_on['name']).first() is None:
                db.session.add(AddOn(**add_on))
                created += 1
        db.session.commit()
        click.echo(f"Seeded {settings_created} setting(s) and {created} catalog item(s).")


# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app() # Create an app instance using the factory.
    app.run(debug=True)
