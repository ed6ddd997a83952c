from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_bcrypt import Bcrypt
from werkzeug.exceptions import HTTPException
from sqlalchemy import text
from config import get_config
from models import db
from extensions import limiter
from errors import APIError, Internal, Unauthenticated
from datetime import datetime
import logging
from logging.handlers import RotatingFileHandler
import atexit
import os

logger = logging.getLogger(__name__)


def error_response(error):
    """APIError → (JSON, status)"""
    return jsonify(error.to_dict()), error.status_code

# ============================================
# Logging
# ============================================

def _rotating_handler(path, level, formatter):
    handler = RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=10)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(app):
    """
    寫檔的 log: app.log 收 INFO 以上,error.log 只收 ERROR

    handler 掛在 root logger,各模組用 logging.getLogger(__name__) 就會寫進來
    """
    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)

    formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'app.log'), logging.INFO, formatter))
    root_logger.addHandler(_rotating_handler(os.path.join(log_dir, 'error.log'), logging.ERROR, formatter))
    root_logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    app.logger.info(f"Logging to {log_dir} at level {app.config.get('LOG_LEVEL', 'INFO')}")

# ============================================
# JWT 驗證失敗 → 401
# ============================================

def register_jwt_handlers(jwt):
    @jwt.expired_token_loader
    def on_expired_token(jwt_header, jwt_payload):
        logger.warning(f"Expired token from {request.remote_addr}")
        return error_response(Unauthenticated('The token has expired. Please login again.'))

    @jwt.invalid_token_loader
    def on_invalid_token(reason):
        logger.warning(f"Invalid token from {request.remote_addr}: {reason}")
        return error_response(Unauthenticated('Token validation failed'))

    @jwt.unauthorized_loader
    def on_missing_token(reason):
        logger.warning(f"Missing token from {request.remote_addr}: {reason}")
        return error_response(Unauthenticated('Access token is required'))

# ============================================
# 全域錯誤處理
# ============================================

def register_error_handlers(app):
    app.register_error_handler(APIError, error_response)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """找不到路由、方法不允許、rate limit 等 werkzeug 的錯誤"""
        if error.code == 429:
            logger.warning(f"Rate limit exceeded from {request.remote_addr}: {request.path}")

        return jsonify({
            'error': error.name.lower().replace(' ', '_'),
            'message': error.description,
            'status': error.code
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        """沒被分類的錯誤: rollback,stack trace 只寫進 log"""
        db.session.rollback()
        logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        return error_response(Internal('An unexpected error occurred. Please try again later.'))

# ============================================
# Blueprints
# ============================================

def register_blueprints(app):
    from auth import auth_bp
    from projects import projects_bp
    from tasks import tasks_bp
    from notifications import notifications_bp
    from posts import posts_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(projects_bp, url_prefix='/api/projects')
    # 任務、評論、到期提醒的路徑都在 /api 底下
    app.register_blueprint(tasks_bp, url_prefix='/api')
    app.register_blueprint(notifications_bp, url_prefix='/api')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')

# ============================================
# App Factory
# ============================================

def create_app(config_class=None):
    """
    建立 Flask app

    connection pool 在這裡建立,整個 process 共用;
    每個 request 結束時 Flask-SQLAlchemy 會把 session 還回 pool。
    """
    config_class = config_class or get_config()
    config_class.validate()

    app = Flask(__name__)
    app.config.from_object(config_class)

    CORS(app,
         supports_credentials=True,
         origins=app.config['CORS_ORIGINS'],
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])

    db.init_app(app)
    jwt = JWTManager(app)
    app.extensions['bcrypt'] = Bcrypt(app)
    limiter.init_app(app)

    if not app.debug and not app.testing:
        setup_logging(app)

    with app.app_context():
        db.create_all()

    register_jwt_handlers(jwt)
    register_error_handlers(app)
    register_blueprints(app)

    @app.before_request
    def log_request():
        if not app.debug:
            logger.info(f"{request.method} {request.path} from {request.remote_addr}")

    @app.after_request
    def add_security_headers(response):
        if not app.debug:
            logger.info(f"{response.status_code} {request.method} {request.path}")

        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        return response

    @app.route('/health', methods=['GET'])
    def health_check():
        """給 load balancer 用,順便確認資料庫連得上"""
        try:
            db.session.execute(text('SELECT 1'))
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return jsonify({
                'status': 'unhealthy',
                'database': 'disconnected'
            }), 503

        return jsonify({
            'status': 'healthy',
            'database': 'connected',
            'timestamp': datetime.utcnow().isoformat()
        }), 200

    @app.route('/')
    def index():
        return jsonify({
            'message': 'Team Task Board API',
            'version': app.config['API_VERSION']
        })

    logger.info(f"App created with {config_class.__name__}")
    return app


def close_database(app):
    """關閉時釋放 connection pool"""
    with app.app_context():
        db.session.remove()
        db.engine.dispose()
    logger.info('Database connection pool disposed')


if __name__ == '__main__':
    # production 請用 gunicorn 之類的 WSGI server
    application = create_app()
    atexit.register(close_database, application)

    application.run(
        debug=application.config['DEBUG'],
        port=application.config['PORT'],
        host='0.0.0.0'
    )
