from flask import Flask, jsonify
from library_app.config import Config
from library_app.errors import LibraryError
from library_app.extensions import db, migrate, jwt


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # 1) extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # models must be imported before create_all / migrations see them
    from library_app.models import book, book_copy, member, transaction, user  # noqa: F401

    # 2) lending core (policy, ledger, store, services)
    from library_app.services.registry import init_lending
    init_lending(app)

    # 3) API blueprints
    from library_app.controllers.auth_controller import auth_bp
    from library_app.controllers.borrow_controller import borrow_bp
    from library_app.controllers.member_controller import member_bp, copy_bp
    from library_app.controllers.risk_controller import risk_bp
    from library_app.controllers.overdue_controller import overdue_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(borrow_bp, url_prefix="/loans")
    app.register_blueprint(member_bp, url_prefix="/members")
    app.register_blueprint(copy_bp, url_prefix="/copies")
    app.register_blueprint(risk_bp, url_prefix="/risk")
    app.register_blueprint(overdue_bp, url_prefix="/overdue")

    @app.errorhandler(LibraryError)
    def handle_library_error(e: LibraryError):
        if e.http_status >= 500:
            app.logger.error(f"[lending] {e.code}: {e.message}")
        return jsonify({"success": False, "message": e.message, "error": e.to_dict()}), e.http_status

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    from library_app.cli import register_cli
    register_cli(app)

    # Scheduler (overdue sweep)
    from library_app.tasks.scheduler import start_scheduler
    start_scheduler(app)

    return app
