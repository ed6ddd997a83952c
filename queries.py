"""
查詢 (只讀)

組出前端需要的反正規化資料,關聯一律用 eager loading 避免 N+1。
沒有關聯資料時回傳空列表,不會出錯。
"""
from datetime import timedelta
from sqlalchemy.orm import joinedload, selectinload
from models import Comment, Project, ProjectMember, Task, TaskAssignee
from errors import NotFound


def _isoformat(value):
    return value.isoformat() if value else None


def serialize_project(project):
    return {
        'id': project.id,
        'name': project.name,
        'content': project.content,
        'created_by': project.created_by,
        'owner_name': project.creator.username,
        'created_at': _isoformat(project.created_at)
    }


def serialize_assignees(task):
    return [{
        'user_id': assignment.user.id,
        'username': assignment.user.username
    } for assignment in task.assignments]


def serialize_task(task):
    return {
        'id': task.id,
        'project_id': task.project_id,
        'title': task.title,
        'content': task.content,
        'status': task.status,
        'due_date': _isoformat(task.due_date),
        'created_by': task.created_by,
        'created_by_username': task.creator.username,
        'assignees': serialize_assignees(task),
        'assigned_to_user_id': task.assigned_to_user_id,
        'created_at': _isoformat(task.created_at)
    }


def serialize_comment(comment):
    return {
        'id': comment.id,
        'task_id': comment.task_id,
        'content': comment.content,
        'author_id': comment.user_id,
        'author_username': comment.author.username,
        'created_at': _isoformat(comment.created_at)
    }


def _task_options():
    return (
        joinedload(Task.creator),
        selectinload(Task.assignments).joinedload(TaskAssignee.user),
    )

# ============================================
# 專案
# ============================================

def list_projects_for_user(session, user_id):
    """使用者參與 (有成員資料) 的所有專案,附上自己的角色"""
    rows = session.query(Project, ProjectMember.role).join(
        ProjectMember, ProjectMember.project_id == Project.id
    ).filter(
        ProjectMember.user_id == user_id
    ).options(
        joinedload(Project.creator)
    ).order_by(Project.created_at.desc(), Project.id.desc()).all()

    projects = []
    for project, role in rows:
        item = serialize_project(project)
        item['my_role'] = role
        projects.append(item)
    return projects


def list_project_members(session, project_id):
    members = session.query(ProjectMember).filter_by(project_id=project_id).options(
        joinedload(ProjectMember.user)
    ).order_by(ProjectMember.id).all()

    return [{
        'user_id': m.user.id,
        'username': m.user.username,
        'email': m.user.email,
        'role': m.role,
        'joined_at': _isoformat(m.joined_at)
    } for m in members]


def get_project_detail(session, project_id):
    project = session.query(Project).options(
        joinedload(Project.creator)
    ).filter_by(id=project_id).first()

    if not project:
        raise NotFound('Project not found')

    return {
        'project': serialize_project(project),
        'members': list_project_members(session, project_id)
    }

# ============================================
# 任務
# ============================================

def list_project_tasks(session, project_id):
    tasks = session.query(Task).filter_by(project_id=project_id).options(
        *_task_options()
    ).order_by(Task.created_at.desc(), Task.id.desc()).all()

    return [serialize_task(task) for task in tasks]


def list_task_comments(session, task_id):
    comments = session.query(Comment).filter_by(task_id=task_id).options(
        joinedload(Comment.author)
    ).order_by(Comment.created_at.asc(), Comment.id.asc()).all()

    return [serialize_comment(c) for c in comments]


def get_task_detail(session, task_id):
    """任務 + 建立者 + 負責人 + 評論"""
    task = session.query(Task).options(
        *_task_options()
    ).filter_by(id=task_id).first()

    if not task:
        raise NotFound('Task not found')

    result = serialize_task(task)
    result['creator_username'] = task.creator.username
    result['comments'] = list_task_comments(session, task_id)
    return result


def list_tasks_due_soon(session, user_id, today, days=7):
    """指派給使用者、在 today ~ today + days 之間到期的任務"""
    until = today + timedelta(days=days)

    tasks = session.query(Task).join(
        TaskAssignee, TaskAssignee.task_id == Task.id
    ).filter(
        TaskAssignee.user_id == user_id,
        Task.due_date.isnot(None),
        Task.due_date >= today,
        Task.due_date <= until
    ).options(
        *_task_options()
    ).order_by(Task.due_date.asc(), Task.id.asc()).all()

    return [serialize_task(task) for task in tasks]
