from contextlib import contextmanager
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from errors import APIError, Conflict, Internal, InvalidReference
import logging

logger = logging.getLogger(__name__)

# MySQL / PostgreSQL 的錯誤代碼
FOREIGN_KEY_CODES = {1216, 1452, '23503'}
UNIQUE_CODES = {1062, '23505'}


def classify_integrity_error(exc):
    """
    把資料庫的 IntegrityError 轉成 API 錯誤

    - 外鍵錯誤 → InvalidReference (400)
    - 唯一性錯誤 → Conflict (409)
    - 其他 → Internal (500)
    """
    orig = getattr(exc, 'orig', None)
    code = getattr(orig, 'pgcode', None)
    if code is None and orig is not None and getattr(orig, 'args', None):
        code = orig.args[0]
    message = str(orig if orig is not None else exc).lower()

    if code in FOREIGN_KEY_CODES or 'foreign key' in message:
        return InvalidReference()
    if code in UNIQUE_CODES or 'unique' in message or 'duplicate' in message:
        return Conflict()
    return Internal()


@contextmanager
def atomic(session):
    """
    把多個寫入包成一個 transaction

    區塊正常結束就 commit,任何錯誤都先 rollback 再往外丟,
    不會留下寫到一半的資料。

    用法:
        with atomic(db.session):
            session.add(project)
            session.flush()
            session.add(ProjectMember(...))
    """
    try:
        yield session
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.warning(f"Transaction rolled back by constraint violation: {e.orig}")
        raise classify_integrity_error(e) from e
    except APIError:
        session.rollback()
        raise
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Transaction rolled back by storage error: {str(e)}", exc_info=True)
        raise Internal() from e
    except Exception:
        session.rollback()
        raise
