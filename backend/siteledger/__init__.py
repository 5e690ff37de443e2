from flask import Flask, current_app, request
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any

from .config.settings import load_settings
from .errors import LedgerError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error_envelope(status: int, title: str, detail: str) -> Dict[str, Any]:
    return {'error': {'status': status, 'title': title, 'detail': detail}}


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    from .services.engine import LedgerEngine, build_db_engine
    app = Flask(__name__)

    app.config.update(load_settings())

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    # Database
    db_engine = build_db_engine(app.config['DATABASE_URL'], app.config['DB_BUSY_TIMEOUT_SECONDS'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Ledger engine gets its own (non-scoped) session factory; each operation is one unit of work
    app.extensions['ledger'] = LedgerEngine.from_settings(app.config, engine=db_engine)

    from .routes.finances import fin_bp  # ledger transactions
    from .routes.materials import mat_bp  # material requests / purchases
    from .routes.approvals import apr_bp  # unified approval queue
    from .routes.reports import rpt_bp  # derived financial views
    app.register_blueprint(fin_bp, url_prefix='/finances')
    app.register_blueprint(mat_bp, url_prefix='/materials')
    app.register_blueprint(apr_bp, url_prefix='/approvals')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):  # type: ignore
        if e.status_code >= 500:
            app.logger.warning('%s: %s', type(e).__name__, e.detail)
        return e.to_payload(), e.status_code

    # Everything else still answers with the same error envelope
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error_envelope(e.code, e.name, e.description), e.code
        app.logger.exception('Unhandled exception on %s %s', request.method, request.path)
        return _error_envelope(500, 'Internal Server Error', 'Unexpected error'), 500

    @app.teardown_appcontext
    def remove_session(_exc=None):
        if SessionLocal is not None:
            SessionLocal.remove()

    return app


def get_db():
    return SessionLocal()


def get_ledger():
    """LedgerEngine bound to the current Flask app."""
    return current_app.extensions['ledger']
