import pytest
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    SECRET_KEY = 'test-secret-key-for-forms' # Flask-Login requires a SECRET_KEY for session cookies
    LOG_LEVEL = 'DEBUG'
    # Pin the service area so distance tests don't depend on environment overrides.
    OUTLET_LAT = 18.654949627383616
    OUTLET_LNG = 73.84475261136429
    SERVICE_RADIUS_KM = 5.0
    OUTLET_TIMEZONE = 'Asia/Kolkata'
    DUPLICATE_ORDER_WINDOW_SECONDS = 10
    PAUSES_FOR_LONG_PLANS = 2

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance

@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Pushes an app context before each test that needs it and pops it afterwards.
    This is crucial for tests that interact with Flask's application context globals
    like `current_app` or extensions initialized with `init_app`.
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def db(app_context): # db fixture now correctly depends on app_context
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    This ensures a clean database state for each test.
    It yields the database instance for use in tests.
    """
    _db.create_all() # Create tables based on models
    yield _db          # Provide the database session/object to the test
    _db.session.remove() # Ensure session is closed
    _db.drop_all()     # Drop all tables to clean up

@pytest.fixture(scope='function')
def client(app):
    """
    Test client with a fresh schema.

    Function-scoped so login cookies don't leak between tests. No app context is held open
    during requests (Flask-Login caches the user on `g`, which lives on the app context);
    tests seed data inside their own `with app.app_context():` blocks.
    """
    with app.app_context():
        _db.create_all()
    yield app.test_client()
    with app.app_context():
        _db.session.remove()
        _db.drop_all()
