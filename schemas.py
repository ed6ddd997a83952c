from flask import request
from marshmallow import EXCLUDE, Schema, fields, validate
from marshmallow import ValidationError as SchemaError
from models import PROJECT_ROLES, TASK_STATUSES, USERNAME_MAX_LENGTH
import errors


class BaseSchema(Schema):
    class Meta:
        # 前端可能多送欄位,直接忽略
        unknown = EXCLUDE

# ============================================
# 使用者
# ============================================

class RegisterSchema(BaseSchema):
    """註冊輸入驗證"""
    username = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=USERNAME_MAX_LENGTH, error='Username must be 1-50 characters'),
        error_messages={'required': 'Username is required'}
    )
    email = fields.Email(required=True, error_messages={
        'required': 'Email is required',
        'invalid': 'Invalid email format'
    })
    password = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=128),
        error_messages={'required': 'Password is required'}
    )


class LoginSchema(BaseSchema):
    """登入輸入驗證"""
    username = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=validate.Length(min=1))


class GoogleLoginSchema(BaseSchema):
    idToken = fields.Str(
        required=True,
        validate=validate.Length(min=1),
        error_messages={'required': 'ID token is required'}
    )

# ============================================
# 專案
# ============================================

class ProjectSchema(BaseSchema):
    """建立/更新專案驗證"""
    name = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=100),
        error_messages={'required': 'Project name is required'}
    )
    content = fields.Str(allow_none=True, validate=validate.Length(max=2000))


class AddMemberSchema(BaseSchema):
    user_id = fields.Int(required=True, strict=True)
    role = fields.Str(validate=validate.OneOf(PROJECT_ROLES), load_default='member')

# ============================================
# 任務
# ============================================

class TaskSchema(BaseSchema):
    """
    建立/更新任務驗證

    assignees_ids 是新的多人指派;assigned_to_user_id 是舊版的單一負責人,
    兩者都會被轉成 task_assignees。
    """
    title = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=255),
        error_messages={'required': 'Task title is required'}
    )
    content = fields.Str(allow_none=True, validate=validate.Length(max=5000))
    status = fields.Str(validate=validate.OneOf(TASK_STATUSES))
    due_date = fields.Date(allow_none=True)
    assigned_to_user_id = fields.Int(allow_none=True, strict=True)
    assignees_ids = fields.List(fields.Int(strict=True), allow_none=True)


class CommentSchema(BaseSchema):
    """評論驗證"""
    content = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=500),
        error_messages={'required': 'Comment content is required'}
    )

# ============================================
# 文章
# ============================================

class PostSchema(BaseSchema):
    title = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    content = fields.Str(required=True, validate=validate.Length(min=1))


def load_request(schema_class):
    """
    統一的輸入驗證

    Returns:
        dict: 驗證後的資料
    Raises:
        errors.ValidationError: body 不是 JSON 或欄位驗證失敗
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise errors.ValidationError('Request body must be a JSON object')

    try:
        return schema_class().load(data)
    except SchemaError as err:
        raise errors.ValidationError('Validation failed', details=err.messages)
