"""
Deferred extension instances.

Created here, bound to the app in create_app() via init_app().
"""

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limit, we apply per-route
    storage_uri="memory://",
)


@login_manager.user_loader
def load_user(user_id):
    """Load user by ID from session. Imports lazily to avoid circular deps."""
    from taskboard.models.user import User

    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def unauthorized():
    """JSON API: no login page to redirect to, raise instead."""
    from taskboard.errors import Unauthenticated

    raise Unauthenticated()


def enable_sqlite_immediate_transactions(engine):
    """Open every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite only emits BEGIN before the first DML statement, so a
    ``SELECT ... FOR UPDATE`` (rendered without FOR UPDATE on SQLite) takes
    no lock and two writers can plan from the same snapshot. Taking the
    write lock at BEGIN makes the project lock real on SQLite.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
