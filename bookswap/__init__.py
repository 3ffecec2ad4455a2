import logging

from flask import Flask, jsonify, request, abort, session, send_from_directory

from .config import get_config
from .errors import BookSwapError
from .extensions import db, migrate, mailer


def create_app(config_overrides: dict | None = None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(get_config())

    # ✅ Apply overrides BEFORE db.init_app so SQLAlchemy uses test DB
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=logging.INFO)
    app.logger.info("BookSwap - init app")

    db.init_app(app)

    # load models so Alembic detects tables / metadata exists
    from . import models  # noqa: F401

    migrate.init_app(app, db)
    mailer.init_app(app)

    from .blueprints.auth.routes import bp as auth_bp
    from .blueprints.books.routes import bp as books_bp
    from .blueprints.book_requests.routes import bp as book_requests_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(books_bp)
    app.register_blueprint(book_requests_bp)

    from .security.access import is_public_endpoint

    # -----------------------------
    # Error handlers (JSON)
    # -----------------------------
    @app.errorhandler(BookSwapError)
    def err_domain(e: BookSwapError):
        app.logger.info(
            "%s %s: %s | method=%s path=%s",
            e.status_code, e.code, e.message, request.method, request.path,
        )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(400)
    def err_400(e):
        return jsonify(error="bad_request", message=e.description), 400

    @app.errorhandler(401)
    def err_401(e):
        return jsonify(error="unauthorized"), 401

    @app.errorhandler(403)
    def err_403(e):
        return jsonify(error="forbidden"), 403

    @app.errorhandler(404)
    def err_404(e):
        return jsonify(error="not_found"), 404

    @app.errorhandler(405)
    def err_405(e):
        return jsonify(error="method_not_allowed"), 405

    @app.errorhandler(413)
    def err_413(e):
        return jsonify(error="file_too_large", max_bytes=app.config.get("MAX_CONTENT_LENGTH")), 413

    @app.errorhandler(429)
    def err_429(e):
        return jsonify(error="too_many_requests"), 429

    @app.errorhandler(500)
    def err_500(e):
        db.session.rollback()
        return jsonify(error="internal_error"), 500

    # -----------------------------
    # Enforcement global + rate limit (auth)
    # -----------------------------
    @app.before_request
    def enforce_session():
        # 0) endpoint None suele ser 404 / rutas no resueltas
        if request.endpoint is None:
            return

        # 1) permitir preflight CORS
        if request.method == "OPTIONS":
            return

        # 2) permitir estáticos
        if request.endpoint == "static":
            return

        # 3) rate limit SOLO para auth.* y NO en tests
        #    OJO: auth.* es público, por eso va ANTES del return de is_public_endpoint
        if (not app.config.get("TESTING")) and request.endpoint.startswith("auth."):
            from .security.rate_limit import hit, limits_for

            xff = request.headers.get("X-Forwarded-For")
            ip = (xff.split(",")[0].strip() if xff else request.remote_addr) or "unknown"

            limit, window_sec = limits_for(request.endpoint)
            key = f"{ip}:{request.endpoint}"
            if not hit(key, limit=limit, window_sec=window_sec):
                app.logger.info(
                    "RATE LIMIT 429: ip=%s endpoint=%s limit=%s window=%s",
                    ip, request.endpoint, limit, window_sec
                )
                abort(429)

        # 4) públicos: auth.*, health/index/routes, uploads
        if is_public_endpoint(request.endpoint):
            return

        # 5) a partir de aquí: requiere login
        user_id = session.get("user_id")
        if not user_id:
            app.logger.info(
                "DENY 401: no session user_id | endpoint=%s method=%s path=%s",
                request.endpoint, request.method, request.path,
            )
            abort(401)

        # 6) cargar usuario: debe existir y estar verificado
        from .models import User
        user = db.session.get(User, user_id)

        if user is None or not user.is_verified:
            app.logger.info(
                "DENY 401: stale session user_id=%s | endpoint=%s method=%s path=%s",
                user_id, request.endpoint, request.method, request.path,
            )
            session.clear()
            abort(401)

    @app.get("/health")
    def health():
        return jsonify(status="ok")

    @app.get("/")
    def index():
        return "BookSwap API ✅"

    @app.get("/routes")
    def routes():
        return jsonify(sorted([str(r) for r in app.url_map.iter_rules()]))

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    return app
