"""
API 錯誤分類

每個錯誤對應一個 HTTP status,由 app.py 的 error handler 統一轉成 JSON:
    {"error": <code>, "message": <訊息>, "status": <status>}
"""


class APIError(Exception):
    status_code = 500
    code = 'internal_error'
    default_message = 'An internal error occurred.'

    def __init__(self, message=None, details=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self):
        payload = {
            'error': self.code,
            'message': self.message,
            'status': self.status_code
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(APIError):
    """必填欄位缺少或格式錯誤"""
    status_code = 400
    code = 'validation_error'
    default_message = 'Validation failed'


class Unauthenticated(APIError):
    status_code = 401
    code = 'unauthenticated'
    default_message = 'Authentication required'


class Forbidden(APIError):
    """已登入但沒有需要的角色"""
    status_code = 403
    code = 'forbidden'
    default_message = 'Permission denied'


class NotFound(APIError):
    status_code = 404
    code = 'not_found'
    default_message = 'The requested resource does not exist'


class Conflict(APIError):
    """違反唯一性約束"""
    status_code = 409
    code = 'conflict'
    default_message = 'Resource already exists'


class InvalidReference(APIError):
    """寫入時違反外鍵約束 (例如指派給不存在的使用者)"""
    status_code = 400
    code = 'invalid_reference'
    default_message = 'A referenced user, project or task does not exist'


class Internal(APIError):
    status_code = 500
    code = 'internal_error'
