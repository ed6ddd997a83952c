from models import ActivityLog
import logging

logger = logging.getLogger(__name__)

PROJECT_CREATED = 'PROJECT_CREATED'
PROJECT_UPDATED = 'PROJECT_UPDATED'
PROJECT_DELETED = 'PROJECT_DELETED'
MEMBER_ADDED = 'MEMBER_ADDED'
TASK_CREATED = 'TASK_CREATED'
TASK_UPDATED = 'TASK_UPDATED'
TASK_DELETED = 'TASK_DELETED'
COMMENT_ADDED = 'COMMENT_ADDED'


def record_activity(session, user_id, behavior, project_id=None, task_id=None, details=None):
    """
    寫入活動日誌

    在主要 transaction commit 之後才呼叫,用自己的小 transaction。
    失敗只記錄到 log,不會影響 request 的結果。
    """
    try:
        log = ActivityLog(
            user_id=user_id,
            project_id=project_id,
            task_id=task_id,
            behavior=behavior,
            details=details or {}
        )
        session.add(log)
        session.commit()
        logger.info(f"Activity logged: {behavior} (log_id: {log.id})")
        return log
    except Exception as e:
        session.rollback()
        logger.error(f"Error logging activity {behavior}: {str(e)}", exc_info=True)
        return None
