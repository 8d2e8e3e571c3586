from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_payload(status: int, code: str, title: str, detail: str, details=None):
    body = {'status': status, 'code': code, 'title': title, 'detail': detail}
    if details is not None:
        body['details'] = details
    return {'error': body}


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['APP_ENV'] = os.getenv('APP_ENV', 'development')
    app.config['PERMISSIONS_CACHE_TTL'] = os.getenv('PERMISSIONS_CACHE_TTL', '120')
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    app.config['ORDERS_PAGE_SIZE'] = 15
    app.config['EVENTS_PAGE_SIZE'] = 10

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    app.logger.setLevel(str(app.config['LOG_LEVEL']).upper())

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Authorization: one permission cache per app, injected into the gate
    from .services.permission_cache import PermissionCache
    from .decorators.auth import AuthorizationGate
    cache = PermissionCache(ttl=app.config['PERMISSIONS_CACHE_TTL'])
    AuthorizationGate(cache).init_app(app)
    app.logger.info('permission cache ready (ttl=%ss)', cache.ttl)

    from .routes.iam import iam_bp
    from .routes.orders import orders_bp
    from .routes.events import events_bp
    app.register_blueprint(iam_bp, url_prefix='/iam')
    app.register_blueprint(orders_bp, url_prefix='/orders')
    app.register_blueprint(events_bp, url_prefix='/events')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    def _auth_error(reason: str):
        return _error_payload(401, 'AUTH_REQUIRED', 'Unauthorized', reason), 401

    @jwt.unauthorized_loader
    def missing_token(reason):
        return _auth_error(reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return _auth_error(reason)

    @jwt.expired_token_loader
    def expired_token(_header, _payload):
        return _auth_error('Token has expired')

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        from .utils.errors import AppError
        if isinstance(e, AppError):
            details = None
            if app.config.get('APP_ENV') != 'production':
                details = e.details
            if e.code >= 500:
                app.logger.error('%s: %s', e.error_code, e.description)
            return _error_payload(e.code, e.error_code, e.name, e.description, details), e.code
        if isinstance(e, HTTPException):
            return _error_payload(e.code, f'HTTP_{e.code}', e.name, e.description), e.code
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'INTERNAL_ERROR', 'Internal Server Error', 'Unexpected error'), 500

    @app.teardown_appcontext
    def remove_session(_exc=None):
        SessionLocal.remove()

    return app


def get_db():
    return SessionLocal()
