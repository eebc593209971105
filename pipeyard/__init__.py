from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os
from pipeyard.logger import get_logger

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "300 per hour"],
    storage_uri=os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')  # Use Redis when running several workers
)


def _env_flag(name, default='False'):
    return os.environ.get(name, default).lower() in ('true', '1', 'yes', 'on')


def create_app(test_config=None):
    from pathlib import Path

    app = Flask(__name__)

    logger = get_logger("pipeyard")
    logger.info("Initializing Flask application")

    # SECURITY: Require SECRET_KEY in environment - no fallback
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY')

    # Prefer an explicit DATABASE_URL (PostgreSQL in production so that row locks
    # are real); otherwise keep a SQLite file in the project's instance/ directory.
    db_env = os.environ.get('DATABASE_URL')
    if db_env:
        app.config['SQLALCHEMY_DATABASE_URI'] = db_env
    else:
        base_dir = Path(__file__).parent.parent
        instance_dir = base_dir / 'instance'
        instance_dir.mkdir(parents=True, exist_ok=True)
        default_db_path = instance_dir / 'pipeyard.db'
        app.config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{str(default_db_path.resolve())}"

    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Workflow configuration
    app.config['YARD_MIN_ADJUSTMENT_REASON'] = int(os.environ.get('YARD_MIN_ADJUSTMENT_REASON', '10'))
    app.config['RATELIMIT_ENABLED'] = _env_flag('RATELIMIT_ENABLED', 'True')

    # Trusted upstream gateway headers carrying the resolved operator identity
    app.config['OPERATOR_ID_HEADER'] = os.environ.get('OPERATOR_ID_HEADER', 'X-Operator-Id')
    app.config['OPERATOR_TENANT_HEADER'] = os.environ.get('OPERATOR_TENANT_HEADER', 'X-Operator-Tenant')
    app.config['OPERATOR_PRIVILEGED_HEADER'] = os.environ.get('OPERATOR_PRIVILEGED_HEADER', 'X-Operator-Privileged')

    if test_config:
        app.config.update(test_config)

    if not app.config['SECRET_KEY']:
        logger.critical("SECRET_KEY not set in environment! Application cannot start.")
        raise RuntimeError("SECRET_KEY environment variable is required")

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
        logger.warning("SQLite configured - row-level locking is not enforced, use PostgreSQL for concurrent operators")
    else:
        logger.debug("Database configured from DATABASE_URL")

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    logger.debug("Extensions initialized")

    # Import models to ensure they're registered with SQLAlchemy
    from pipeyard.data.storage_unit import StorageUnit
    from pipeyard.data.storage_request import StorageRequest, UnitAllocation
    from pipeyard.data.trucking_load import TruckingLoad
    from pipeyard.data.inventory_item import InventoryItem
    from pipeyard.data.audit_record import AuditRecord
    from pipeyard.data.notification_intent import NotificationIntent

    logger.debug("Models imported and registered")

    # Register operator resolution and blueprints
    from pipeyard import auth  # noqa: F401
    from pipeyard.presentation.routes.yard import yard_bp

    app.register_blueprint(yard_bp, url_prefix='/api/yard')

    logger.info("Flask application initialization complete")

    return app
