"""
權限檢查

所有會修改資料的 handler 都透過 authorize() 判斷,不再每個 route 各寫一份。
每次檢查都重新從資料庫讀取擁有者與角色。
"""
from collections import namedtuple
from models import Project, ProjectMember, Task
from errors import Forbidden, NotFound
import logging

logger = logging.getLogger(__name__)

MANAGER_ROLES = frozenset({'manager', 'owner'})
ANY_ROLE = frozenset({'member', 'manager', 'owner'})
CREATOR_ONLY = frozenset()

# 要檢查的對象: 實體本身、建立者、所屬專案
Target = namedtuple('Target', ['entity', 'creator_id', 'project_id'])


def load_project(session, project_id):
    project = session.get(Project, project_id)
    if project is None:
        raise NotFound('Project not found')
    return Target(project, project.created_by, project.id)


def load_task(session, task_id):
    task = session.get(Task, task_id)
    if task is None:
        raise NotFound('Task not found')
    return Target(task, task.created_by, task.project_id)


def get_member_role(session, project_id, user_id):
    """回傳使用者在專案中的角色,不是成員就回傳 None"""
    role = session.query(ProjectMember.role).filter_by(
        project_id=project_id,
        user_id=user_id
    ).scalar()
    return role


def authorize(session, actor_id, target, roles, allow_creator=True):
    """
    判斷 actor 能不能修改 target

    依序判斷,第一個成立的就通過:
    1. allow_creator 而且 actor 是建立者
    2. actor 在專案中的角色屬於 roles

    Returns:
        str: 'creator' 或 actor 的角色
    Raises:
        Forbidden: 不是成員或角色不足,這時還沒有寫入任何資料
    """
    if allow_creator and target.creator_id == actor_id:
        return 'creator'

    role = get_member_role(session, target.project_id, actor_id)
    if role is None:
        logger.warning(f"User {actor_id} is not a member of project {target.project_id}")
        raise Forbidden('You are not a member of this project')

    if role not in roles:
        logger.warning(
            f"User {actor_id} with role '{role}' denied on project {target.project_id}"
        )
        raise Forbidden('Your role in this project does not allow this action')

    return role


def require_membership(session, actor_id, project_id):
    """讀取用的檢查: 只要是專案成員 (任何角色) 就可以"""
    role = get_member_role(session, project_id, actor_id)
    if role is None:
        raise Forbidden('You are not a member of this project')
    return role
