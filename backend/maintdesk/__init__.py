from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def build_engine(db_url: str):
    """Create the SQLAlchemy engine for db_url.

    In-memory SQLite shares one connection across sessions; file SQLite waits on
    the database lock (busy timeout) instead of failing concurrent writers.
    """
    if db_url.startswith('sqlite') and db_url.endswith(':memory:'):
        return create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if db_url.startswith('sqlite'):
        return create_engine(db_url, echo=False, future=True, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(db_url, echo=False, future=True, pool_pre_ping=True)


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['AUTO_CLOSE_DAYS'] = int(os.getenv('AUTO_CLOSE_DAYS', '3'))
    app.config['NOTIFICATIONS_ENABLED'] = _env_flag('NOTIFICATIONS_ENABLED', 'true')
    app.config['NOTIFICATION_WORKERS'] = int(os.getenv('NOTIFICATION_WORKERS', '2'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    logging.getLogger('maintdesk').setLevel(app.config['LOG_LEVEL'])

    # Database
    db_engine = build_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .services import notifications
    notifications.configure(
        enabled=app.config['NOTIFICATIONS_ENABLED'],
        max_workers=app.config['NOTIFICATION_WORKERS'],
    )

    from .routes.requests import req_bp  # request lifecycle
    from .routes.buildings import bld_bp  # building configuration & identifiers
    app.register_blueprint(req_bp, url_prefix='/requests')
    app.register_blueprint(bld_bp, url_prefix='/building-configs')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc):  # type: ignore
        if SessionLocal is not None:
            SessionLocal.remove()

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'detail': e.description,
                    'code': getattr(e, 'error_code', None) or (e.name or '').upper().replace(' ', '_'),
                }
            }
            if e.code and e.code >= 500:
                app.logger.error('Request failed: %s', e.description)
            return payload, e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'detail': 'Unexpected error',
                'code': 'INTERNAL_ERROR',
            }
        }, 500

    return app


def get_db():
    return SessionLocal()
