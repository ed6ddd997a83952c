from flask import Blueprint, jsonify, current_app
from flask_jwt_extended import create_access_token, decode_token, get_jwt_identity, jwt_required
from flask_jwt_extended.exceptions import JWTExtendedException
from google.auth.exceptions import GoogleAuthError
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token
from jwt.exceptions import PyJWTError
from sqlalchemy import or_
from models import db, User, USERNAME_MAX_LENGTH
from schemas import GoogleLoginSchema, LoginSchema, RegisterSchema, load_request
from transactions import atomic
from extensions import limiter
from errors import Conflict, Forbidden, Internal, NotFound, Unauthenticated
import logging

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

# ============================================
# Helper Functions
# ============================================

def get_bcrypt():
    """從 Flask app extensions 取得 bcrypt 實例 (不用 global variable)"""
    bcrypt = current_app.extensions.get('bcrypt')
    if bcrypt is None:
        logger.error("Bcrypt extension not loaded correctly.")
        raise Internal('Server configuration error')
    return bcrypt


def issue_token(user):
    """產生 access token,identity 是 user id"""
    return create_access_token(
        identity=str(user.id),
        additional_claims={'username': user.username, 'email': user.email}
    )


def verify_token(token):
    """
    驗證 access token

    Returns:
        int: token 裡的 user id
    Raises:
        Unauthenticated: token 缺少、格式錯誤、過期或簽章不符
    """
    if not token:
        raise Unauthenticated('Access token is required')

    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.warning(f"Token verification failed: {str(e)}")
        raise Unauthenticated('Token validation failed') from e

    if claims.get('type') != 'access':
        raise Unauthenticated('Token validation failed')

    try:
        return int(claims['sub'])
    except (KeyError, TypeError, ValueError) as e:
        raise Unauthenticated('Token validation failed') from e


def current_actor_id():
    """@jwt_required() 之後取得目前使用者的 id"""
    return int(get_jwt_identity())


def verify_google_id_token(token):
    """驗證 Google ID token,回傳 payload (sub, email, name, picture)"""
    client_id = current_app.config.get('GOOGLE_CLIENT_ID')
    if not client_id:
        logger.error("GOOGLE_CLIENT_ID is not configured")
        raise Internal('Google login is not configured')

    try:
        return google_id_token.verify_oauth2_token(token, google_requests.Request(), client_id)
    except (ValueError, GoogleAuthError) as e:
        logger.warning(f"Google ID token verification failed: {str(e)}")
        raise Unauthenticated('Invalid Google ID token') from e


def build_username(email):
    """
    Google 新帳號的 username: email 的 local part

    超過長度就截斷,跟既有的 username 重複就加上 _1、_2 ...
    """
    base = email.split('@')[0][:USERNAME_MAX_LENGTH] or 'user'
    candidate = base
    suffix = 1
    while User.query.filter_by(username=candidate).first() is not None:
        tail = f'_{suffix}'
        candidate = base[:USERNAME_MAX_LENGTH - len(tail)] + tail
        suffix += 1
    return candidate


def user_payload(user):
    return {
        'user_id': user.id,
        'username': user.username,
        'email': user.email
    }

# ============================================
# 註冊 API
# ============================================

@auth_bp.route('/api/register', methods=['POST'])
@limiter.limit("20 per hour")
def register():
    """
    使用者註冊

    1. username / email 不能重複 (409)
    2. 密碼用 bcrypt 加密
    3. 註冊成功直接回傳 token
    """
    result = load_request(RegisterSchema)

    existing = User.query.filter(
        or_(User.username == result['username'], User.email == result['email'])
    ).first()
    if existing:
        raise Conflict('Username or email already exists')

    hashed_password = get_bcrypt().generate_password_hash(result['password']).decode('utf-8')

    with atomic(db.session):
        user = User(
            username=result['username'],
            email=result['email'],
            password_hash=hashed_password
        )
        db.session.add(user)
        db.session.flush()

    logger.info(f"New user registered: {user.username}")

    return jsonify({
        'message': 'User registered successfully',
        'user': user_payload(user),
        'token': issue_token(user)
    }), 201

# ============================================
# 登入 API
# ============================================

@auth_bp.route('/api/login', methods=['POST'])
@limiter.limit("10 per minute")
def login():
    """
    使用者登入

    不區分是帳號錯還是密碼錯,避免帳號枚舉攻擊
    """
    result = load_request(LoginSchema)

    user = User.query.filter_by(username=result['username']).first()

    # Google 帳號沒有密碼,不能用密碼登入
    if not user or not user.password_hash or \
            not get_bcrypt().check_password_hash(user.password_hash, result['password']):
        logger.warning(f"Failed login attempt for username: {result['username']}")
        raise Unauthenticated('Invalid credentials')

    logger.info(f"User logged in: {user.username}")

    return jsonify({
        'message': 'Login successful',
        'user': user_payload(user),
        'token': issue_token(user)
    }), 200

# ============================================
# Google 登入
# ============================================

@auth_bp.route('/auth/google', methods=['POST'])
@limiter.limit("10 per minute")
def google_login():
    """
    Google 登入

    1. 用 google_id 找使用者
    2. 找不到就用 email 找;只綁定沒有密碼的帳號,
       有密碼的帳號 (email 沒驗證過) 回 409,不自動合併
    3. 都沒有就建立新帳號 (username 由 email 產生)
    每次登入都更新 name 和大頭貼
    """
    result = load_request(GoogleLoginSchema)
    payload = verify_google_id_token(result['idToken'])

    google_id = payload.get('sub')
    email = payload.get('email')
    if not google_id or not email or payload.get('email_verified') not in (True, 'true'):
        raise Unauthenticated('Google account has no verified email')

    name = payload.get('name')
    picture = payload.get('picture')

    with atomic(db.session):
        user = User.query.filter_by(google_id=google_id).first()
        if user is None:
            user = User.query.filter_by(email=email).first()
            if user is not None and user.password_hash:
                logger.warning(f"Google login refused to link password account: {email}")
                raise Conflict('An account with this email already exists. Please login with your password.')

        if user is None:
            user = User(
                google_id=google_id,
                email=email,
                username=build_username(email),
                name=name,
                profile_pic=picture
            )
            db.session.add(user)
            logger.info(f"New Google user registered: {email}")
        else:
            user.google_id = google_id
            user.name = name
            user.profile_pic = picture
            logger.info(f"Existing Google user logged in: {email}")
        db.session.flush()

    return jsonify({
        'message': 'Google login successful',
        'user': {
            'user_id': user.id,
            'google_id': user.google_id,
            'name': user.name,
            'email': user.email,
            'profile_pic': user.profile_pic
        },
        'token': issue_token(user)
    }), 200

# ============================================
# 使用者資料
# ============================================

@auth_bp.route('/api/profile', methods=['GET'])
@jwt_required()
def get_profile():
    """取得目前登入使用者的資料 (不含密碼)"""
    user_id = current_actor_id()
    user = db.session.get(User, user_id)

    if not user:
        logger.warning(f"Token valid but user not found: {user_id}")
        raise NotFound('User not found')

    return jsonify(user.to_dict()), 200


@auth_bp.route('/api/users/<int:user_id>', methods=['GET'])
@jwt_required()
def get_user(user_id):
    """只能查自己的資料"""
    if user_id != current_actor_id():
        raise Forbidden("You cannot view another user's profile")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound('User not found')

    return jsonify({
        'user_id': user.id,
        'username': user.username,
        'email': user.email,
        'created_at': user.created_at.isoformat() if user.created_at else None
    }), 200
