import sqlite3
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()

TASK_STATUSES = ('todo', 'doing', 'done')
PROJECT_ROLES = ('member', 'manager', 'owner')
USERNAME_MAX_LENGTH = 50


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite 預設不檢查外鍵,CASCADE / SET NULL 需要手動打開"""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


# ============================================
# 1. User 模型
# ============================================
class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(USERNAME_MAX_LENGTH), unique=True, nullable=False, index=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    # Google 登入的帳號沒有密碼
    password_hash = db.Column(db.String(255), nullable=True)

    # Google 登入欄位
    google_id = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(255))
    profile_pic = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'name': self.name,
            'profile_pic': self.profile_pic,
            'google_id': self.google_id,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }

# ============================================
# 2. Project 模型
# ============================================
class Project(db.Model):
    __tablename__ = 'projects'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    content = db.Column(db.Text, nullable=True)
    created_by = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # 關聯 (刪除交給資料庫的 ON DELETE CASCADE)
    creator = db.relationship('User', lazy='joined')
    members = db.relationship(
        'ProjectMember', back_populates='project',
        cascade='all,delete-orphan', passive_deletes=True
    )
    tasks = db.relationship(
        'Task', back_populates='project',
        cascade='all,delete-orphan', passive_deletes=True
    )

    __table_args__ = (
        db.Index('idx_project_creator', 'created_by'),
    )

# ============================================
# 3. ProjectMember 模型
# ============================================
class ProjectMember(db.Model):
    __tablename__ = 'project_members'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    role = db.Column(db.String(20), nullable=False, default='member')  # member, manager, owner
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    project = db.relationship('Project', back_populates='members')
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('project_id', 'user_id', name='unique_project_member'),
    )

# ============================================
# 4. Task 模型
# ============================================
class Task(db.Model):
    __tablename__ = 'tasks'

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False
    )
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    status = db.Column(
        db.Enum(*TASK_STATUSES, name='task_status'), nullable=False, default='todo'
    )
    created_by = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    project = db.relationship('Project', back_populates='tasks')
    creator = db.relationship('User')
    assignments = db.relationship(
        'TaskAssignee', back_populates='task', order_by='TaskAssignee.id',
        cascade='all,delete-orphan', passive_deletes=True
    )
    comments = db.relationship(
        'Comment', back_populates='task', order_by='Comment.created_at',
        cascade='all,delete-orphan', passive_deletes=True
    )

    __table_args__ = (
        db.Index('idx_task_project_status', 'project_id', 'status'),
        db.Index('idx_task_due_date', 'due_date'),
    )

    @property
    def assigned_to_user_id(self):
        """舊版的單一負責人欄位,由 task_assignees 推導出來"""
        if not self.assignments:
            return None
        return self.assignments[0].user_id

# ============================================
# 5. TaskAssignee 模型 (多對多)
# ============================================
class TaskAssignee(db.Model):
    __tablename__ = 'task_assignees'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )

    task = db.relationship('Task', back_populates='assignments')
    user = db.relationship('User')

    __table_args__ = (
        db.UniqueConstraint('task_id', 'user_id', name='unique_task_assignee'),
    )

# ============================================
# 6. Comment 模型
# ============================================
class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(
        db.Integer, db.ForeignKey('tasks.id', ondelete='CASCADE'), nullable=False
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    content = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    task = db.relationship('Task', back_populates='comments')
    author = db.relationship('User')

# ============================================
# 7. ActivityLog 模型 (只寫不讀)
# ============================================
class ActivityLog(db.Model):
    __tablename__ = 'activity_logs'

    id = db.Column(db.Integer, primary_key=True)
    # 任務/專案被刪除時只把關聯設成 NULL,log 保留
    task_id = db.Column(
        db.Integer, db.ForeignKey('tasks.id', ondelete='SET NULL'), nullable=True
    )
    project_id = db.Column(
        db.Integer, db.ForeignKey('projects.id', ondelete='SET NULL'), nullable=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    behavior = db.Column(db.String(100), nullable=False)
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

# ============================================
# 8. Post 模型 (獨立的部落格功能)
# ============================================
class Post(db.Model):
    __tablename__ = 'posts'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    content = db.Column(db.Text, nullable=False)
    author_id = db.Column(
        db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    author = db.relationship('User')
