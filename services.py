"""
寫入流程 (權限檢查 + transaction)

每個會修改專案/任務的操作都照同一個順序:
    1. 讀取目標 (不存在 → NotFound)
    2. authorize() 檢查建立者/角色 (不通過 → Forbidden,沒有任何寫入)
    3. 在 atomic() 裡做主要寫入,再寫相依的資料列,然後 commit
    4. commit 之後寫活動日誌 (失敗不影響結果)

session 由呼叫端傳進來,這裡不直接碰全域的 db 物件。
"""
from models import Comment, Project, ProjectMember, Task, TaskAssignee, User
from policy import (
    ANY_ROLE, CREATOR_ONLY, MANAGER_ROLES,
    authorize, load_project, load_task
)
from transactions import atomic
from errors import Conflict, NotFound
import activity
import logging

logger = logging.getLogger(__name__)


def normalize_assignees(assignees_ids, assigned_to_user_id):
    """
    把新舊兩種指派格式統一成一個 user id 列表

    有 assignees_ids 就用它 (去除重複、保留順序),
    沒有的話退回舊版的 assigned_to_user_id,兩個都沒有就是空列表。
    """
    if assignees_ids:
        return list(dict.fromkeys(assignees_ids))
    if assigned_to_user_id:
        return [assigned_to_user_id]
    return []


def _insert_assignees(session, task_id, user_ids):
    session.add_all([TaskAssignee(task_id=task_id, user_id=uid) for uid in user_ids])
    session.flush()

# ============================================
# 專案
# ============================================

def create_project(session, actor_id, data):
    """建立專案,建立者同時成為 manager"""
    with atomic(session):
        project = Project(
            name=data['name'],
            content=data.get('content'),
            created_by=actor_id
        )
        session.add(project)
        session.flush()  # 取得 project.id

        session.add(ProjectMember(project_id=project.id, user_id=actor_id, role='manager'))
        session.flush()

    logger.info(f"Project created: {project.name} (id={project.id}) by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.PROJECT_CREATED,
        project_id=project.id,
        details={'projectName': project.name}
    )
    return project


def update_project(session, actor_id, project_id, data):
    """
    更新專案名稱/內容

    建立者或 manager/owner 可以修改

    Returns:
        tuple: (project, changes)
    """
    changes = {}

    with atomic(session):
        target = load_project(session, project_id)
        authorize(session, actor_id, target, MANAGER_ROLES)

        project = target.entity
        for field in ['name', 'content']:
            if field in data:
                old_value = getattr(project, field)
                new_value = data[field]
                if old_value != new_value:
                    changes[field] = {'old': old_value, 'new': new_value}
                    setattr(project, field, new_value)
        session.flush()

    logger.info(f"Project {project_id} updated by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.PROJECT_UPDATED,
        project_id=project_id,
        details={'changes': changes}
    )
    return project, changes


def delete_project(session, actor_id, project_id):
    """
    刪除專案 (只有建立者可以)

    成員、任務、任務的指派與評論由 ON DELETE CASCADE 一起刪掉
    """
    with atomic(session):
        target = load_project(session, project_id)
        authorize(session, actor_id, target, CREATOR_ONLY)

        project_name = target.entity.name
        session.delete(target.entity)
        session.flush()

    logger.info(f"Project deleted: {project_name} (id={project_id}) by user {actor_id}")

    # 專案已經不存在,只能把 id 放在 details
    activity.record_activity(
        session, actor_id, activity.PROJECT_DELETED,
        details={'projectId': project_id, 'projectName': project_name}
    )


def add_member(session, actor_id, project_id, data):
    """新增專案成員 (建立者或 manager/owner)"""
    with atomic(session):
        target = load_project(session, project_id)
        authorize(session, actor_id, target, MANAGER_ROLES)

        user = session.get(User, data['user_id'])
        if user is None:
            raise NotFound('User not found')

        existing = session.query(ProjectMember).filter_by(
            project_id=project_id,
            user_id=user.id
        ).first()
        if existing:
            raise Conflict('User is already a member')

        member = ProjectMember(project_id=project_id, user_id=user.id, role=data['role'])
        session.add(member)
        session.flush()

    logger.info(f"Member added to project {project_id}: user {user.id} as {member.role}")

    activity.record_activity(
        session, actor_id, activity.MEMBER_ADDED,
        project_id=project_id,
        details={'userId': user.id, 'username': user.username, 'role': member.role}
    )
    return member

# ============================================
# 任務
# ============================================

def create_task(session, actor_id, project_id, data):
    """在專案中建立任務,並寫入指派對象"""
    assignee_ids = normalize_assignees(
        data.get('assignees_ids'), data.get('assigned_to_user_id')
    )

    with atomic(session):
        target = load_project(session, project_id)
        authorize(session, actor_id, target, ANY_ROLE)

        task = Task(
            project_id=project_id,
            title=data['title'],
            content=data.get('content'),
            status=data.get('status') or 'todo',
            due_date=data.get('due_date'),
            created_by=actor_id
        )
        session.add(task)
        session.flush()  # 取得 task.id

        _insert_assignees(session, task.id, assignee_ids)

    logger.info(f"Task created: {task.title} (id={task.id}) in project {project_id} by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.TASK_CREATED,
        project_id=project_id,
        task_id=task.id,
        details={'taskTitle': task.title, 'assignees': assignee_ids}
    )
    return task


def update_task(session, actor_id, task_id, data):
    """
    更新任務

    權限: 任務建立者,或專案的 manager/owner。
    指派是「整組取代」: 先刪掉全部舊的指派,再寫入新的;
    沒給任何指派就等於清空。
    """
    assignee_ids = normalize_assignees(
        data.get('assignees_ids'), data.get('assigned_to_user_id')
    )
    changes = {}

    with atomic(session):
        target = load_task(session, task_id)
        authorize(session, actor_id, target, MANAGER_ROLES)

        task = target.entity
        for field in ['title', 'content', 'status', 'due_date']:
            if field in data:
                old_value = getattr(task, field)
                new_value = data[field]
                if old_value != new_value:
                    changes[field] = {'old': str(old_value), 'new': str(new_value)}
                    setattr(task, field, new_value)
        session.flush()

        session.query(TaskAssignee).filter_by(task_id=task_id).delete(
            synchronize_session=False
        )
        _insert_assignees(session, task_id, assignee_ids)

    # 指派已經用 bulk delete 換掉,重新載入
    session.expire(task, ['assignments'])

    logger.info(f"Task {task_id} updated by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.TASK_UPDATED,
        project_id=task.project_id,
        task_id=task_id,
        details={'changes': changes, 'assignees': assignee_ids}
    )
    return task


def delete_task(session, actor_id, task_id):
    """
    刪除任務

    只有專案的 manager/owner 可以刪,任務建立者本身不夠 (跟更新不同)
    """
    with atomic(session):
        target = load_task(session, task_id)
        authorize(session, actor_id, target, MANAGER_ROLES, allow_creator=False)

        task_title = target.entity.title
        session.delete(target.entity)
        session.flush()

    logger.info(f"Task deleted: {task_title} (id={task_id}) by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.TASK_DELETED,
        project_id=target.project_id,
        details={'taskId': task_id, 'taskTitle': task_title}
    )


def add_comment(session, actor_id, task_id, content):
    """新增任務評論 (專案成員都可以)"""
    with atomic(session):
        target = load_task(session, task_id)
        authorize(session, actor_id, target, ANY_ROLE, allow_creator=False)

        comment = Comment(task_id=task_id, user_id=actor_id, content=content)
        session.add(comment)
        session.flush()

    logger.info(f"Comment added to task {task_id} by user {actor_id}")

    activity.record_activity(
        session, actor_id, activity.COMMENT_ADDED,
        project_id=target.project_id,
        task_id=task_id,
        details={'commentId': comment.id, 'preview': content[:100]}
    )
    return comment
