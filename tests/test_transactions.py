import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from errors import Conflict, Internal, InvalidReference, NotFound
from models import db, User
from services import normalize_assignees
from transactions import atomic, classify_integrity_error


class FakeDriverError(Exception):
    pass


def integrity_error(*args):
    return IntegrityError('INSERT ...', {}, FakeDriverError(*args))


@pytest.mark.parametrize('args, expected', [
    ((1452, 'Cannot add or update a child row: a foreign key constraint fails'),
     InvalidReference),
    (('FOREIGN KEY constraint failed',), InvalidReference),
    ((1062, "Duplicate entry 'alice' for key 'username'"), Conflict),
    (('UNIQUE constraint failed: users.username',), Conflict),
    (('NOT NULL constraint failed: users.email',), Internal),
])
def test_classify_integrity_error(args, expected):
    assert isinstance(classify_integrity_error(integrity_error(*args)), expected)


def test_classify_postgres_codes():
    orig = FakeDriverError('violates foreign key')
    orig.pgcode = '23503'
    error = IntegrityError('INSERT ...', {}, orig)

    assert isinstance(classify_integrity_error(error), InvalidReference)


def test_atomic_commits(app):
    with app.app_context():
        with atomic(db.session):
            db.session.add(User(username='alice', email='alice@example.com'))

        assert User.query.count() == 1


def test_atomic_rolls_back_on_api_error(app):
    with app.app_context():
        with pytest.raises(NotFound):
            with atomic(db.session):
                db.session.add(User(username='alice', email='alice@example.com'))
                db.session.flush()
                raise NotFound()

        assert User.query.count() == 0


def test_atomic_translates_unique_violation(app):
    with app.app_context():
        with atomic(db.session):
            db.session.add(User(username='alice', email='alice@example.com'))

        with pytest.raises(Conflict):
            with atomic(db.session):
                db.session.add(User(username='alice', email='other@example.com'))

        assert User.query.count() == 1


def test_atomic_wraps_storage_errors(app):
    with app.app_context():
        with pytest.raises(Internal):
            with atomic(db.session):
                raise OperationalError('SELECT 1', {}, FakeDriverError('database is locked'))


@pytest.mark.parametrize('assignees_ids, legacy, expected', [
    ([3, 1, 3, 2], None, [3, 1, 2]),
    ([4], 9, [4]),
    ([], 9, [9]),
    (None, 9, [9]),
    (None, None, []),
])
def test_normalize_assignees(assignees_ids, legacy, expected):
    assert normalize_assignees(assignees_ids, legacy) == expected
