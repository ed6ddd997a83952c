import os
from datetime import timedelta
from dotenv import load_dotenv
from sqlalchemy.engine import URL

# 載入 .env 檔案
load_dotenv()


def build_database_uri():
    """
    組出資料庫連線字串

    優先順序:
    1. DATABASE_URL (完整連線字串)
    2. DB_HOST / DB_USER / DB_PASSWORD / DB_NAME (MySQL)
    3. 本機 SQLite
    """
    database_url = os.getenv('DATABASE_URL')
    if database_url:
        return database_url

    host = os.getenv('DB_HOST')
    if host:
        return URL.create(
            'mysql+pymysql',
            username=os.getenv('DB_USER'),
            password=os.getenv('DB_PASSWORD'),
            host=host,
            port=int(os.getenv('DB_PORT', 3306)),
            database=os.getenv('DB_NAME'),
        ).render_as_string(hide_password=False)

    return 'sqlite:///task_board.db'


class Config:
    """
    應用程式設定

    所有選項都是單純的 key/value,從環境變數讀取
    """

    # ============================================
    # 基本設定
    # ============================================

    # ⚠️ 在 production 環境必須設定強隨機值
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = os.getenv('FLASK_DEBUG', 'False').lower() == 'true'
    PORT = int(os.getenv('PORT', 5000))

    # ============================================
    # 資料庫設定
    # ============================================

    SQLALCHEMY_DATABASE_URI = build_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Connection Pool 設定 (所有 request 共用)
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': int(os.getenv('DB_POOL_SIZE', 10)),
        'pool_recycle': int(os.getenv('DB_POOL_RECYCLE', 3600)),
        'pool_pre_ping': True,
        'max_overflow': int(os.getenv('DB_MAX_OVERFLOW', 20))
    }

    # ============================================
    # JWT 設定
    # ============================================

    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', SECRET_KEY)

    # Token 固定一小時過期
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        hours=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES_HOURS', 1))
    )

    JWT_TOKEN_LOCATION = ['headers']
    JWT_HEADER_NAME = 'Authorization'
    JWT_HEADER_TYPE = 'Bearer'
    JWT_ERROR_MESSAGE_KEY = 'message'

    # ============================================
    # Google 登入
    # ============================================

    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')

    # ============================================
    # 密碼加密
    # ============================================

    BCRYPT_LOG_ROUNDS = int(os.getenv('BCRYPT_LOG_ROUNDS', 12))

    # ============================================
    # CORS 設定
    # ============================================

    # 不要在 production 用 '*'
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:3000').split(',')

    # ============================================
    # Rate Limiting 設定
    # ============================================

    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = REDIS_URL if ENV == 'production' else 'memory://'
    RATELIMIT_STRATEGY = 'fixed-window'
    RATELIMIT_HEADERS_ENABLED = True
    RATELIMIT_DEFAULT = '1000 per day;200 per hour'

    # ============================================
    # Logging 設定
    # ============================================

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # ============================================
    # 其他設定
    # ============================================

    API_VERSION = '1.0.0'

    # 到期提醒的天數範圍
    DUE_SOON_DAYS = int(os.getenv('DUE_SOON_DAYS', 7))

    @classmethod
    def validate(cls):
        """
        驗證設定是否正確

        在啟動時檢查必要的設定是否都有設定
        """
        required_in_production = [
            'SECRET_KEY',
            'JWT_SECRET_KEY',
        ]

        if cls.ENV != 'production':
            return

        missing = [key for key in required_in_production if not os.getenv(key)]
        if not (os.getenv('DATABASE_URL') or os.getenv('DB_HOST')):
            missing.append('DATABASE_URL or DB_HOST')

        if missing:
            raise ValueError(
                f"Missing required environment variables in production: {', '.join(missing)}"
            )

        if cls.SECRET_KEY == 'dev-secret-key-change-in-production':
            raise ValueError("You must set a strong SECRET_KEY in production!")


class DevelopmentConfig(Config):
    """開發環境設定"""
    DEBUG = True
    SQLALCHEMY_ECHO = True  # 印出 SQL 查詢


class ProductionConfig(Config):
    """生產環境設定"""
    ENV = 'production'
    DEBUG = False
    TESTING = False
    RATELIMIT_STORAGE_URI = Config.REDIS_URL


class TestingConfig(Config):
    """測試環境設定"""
    ENV = 'testing'
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'  # 使用記憶體資料庫
    # 記憶體資料庫用 StaticPool,不能帶 pool_size
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = 'testing-secret-key'
    JWT_SECRET_KEY = 'testing-jwt-secret-key-with-enough-length'
    GOOGLE_CLIENT_ID = 'test-client-id.apps.googleusercontent.com'
    BCRYPT_LOG_ROUNDS = 4
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = 'memory://'


# 根據環境變數選擇設定
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """取得當前環境的設定"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
