from models import db, ActivityLog, Project, ProjectMember, Task


def test_health(client):
    resp = client.get('/health')

    assert resp.status_code == 200
    assert resp.get_json()['database'] == 'connected'


def test_unknown_route_is_json_404(client):
    resp = client.get('/api/nothing-here')

    assert resp.status_code == 404
    assert resp.get_json()['error'] == 'not_found'


def test_create_project_makes_creator_manager(app, make_user, create_project):
    alice = make_user('alice')

    project_id = create_project(alice, name='Launch')

    with app.app_context():
        members = ProjectMember.query.filter_by(project_id=project_id).all()
        assert [(m.user_id, m.role) for m in members] == [(alice.id, 'manager')]

        log = ActivityLog.query.filter_by(behavior='PROJECT_CREATED').one()
        assert log.project_id == project_id
        assert log.details['projectName'] == 'Launch'


def test_create_project_requires_name(client, make_user):
    alice = make_user('alice')

    resp = client.post('/api/projects', json={'content': 'x'}, headers=alice.headers)

    assert resp.status_code == 400


def test_create_project_requires_auth(client):
    resp = client.post('/api/projects', json={'name': 'Launch'})
    assert resp.status_code == 401


def test_list_my_projects(client, make_user, create_project):
    alice = make_user('alice')
    bob = make_user('bob')
    create_project(alice, name='First')
    create_project(alice, name='Second')
    create_project(bob, name='Bob only')

    resp = client.get('/api/projects', headers=alice.headers)

    assert resp.status_code == 200
    projects = resp.get_json()
    assert [p['name'] for p in projects] == ['Second', 'First']
    assert all(p['my_role'] == 'manager' for p in projects)
    assert projects[0]['owner_name'] == 'alice'


def test_project_detail_round_trip(client, make_user, create_project):
    alice = make_user('alice')
    project_id = create_project(alice, name='Launch', content='Q3 launch')

    resp = client.get(f'/api/projects/{project_id}', headers=alice.headers)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['project']['name'] == 'Launch'
    assert body['project']['content'] == 'Q3 launch'
    assert body['members'][0]['username'] == 'alice'


def test_project_detail_not_found(client, make_user):
    alice = make_user('alice')

    resp = client.get('/api/projects/999', headers=alice.headers)
    assert resp.status_code == 404


def test_project_detail_hidden_from_non_members(client, make_user, create_project):
    alice = make_user('alice')
    mallory = make_user('mallory')
    project_id = create_project(alice)

    resp = client.get(f'/api/projects/{project_id}', headers=mallory.headers)
    assert resp.status_code == 403

# ============================================
# 更新
# ============================================

def test_update_project_by_manager(app, client, make_user, create_project, add_member):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice, name='Old')
    add_member(project_id, bob.id, role='manager')

    resp = client.put(f'/api/projects/{project_id}', json={'name': 'New'}, headers=bob.headers)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body['project']['name'] == 'New'
    assert body['changes']['name'] == {'old': 'Old', 'new': 'New'}

    with app.app_context():
        assert ActivityLog.query.filter_by(behavior='PROJECT_UPDATED').count() == 1


def test_update_project_by_plain_member_forbidden(app, client, make_user, create_project,
                                                 add_member):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice, name='Old')
    add_member(project_id, bob.id, role='member')

    resp = client.put(f'/api/projects/{project_id}', json={'name': 'New'}, headers=bob.headers)

    assert resp.status_code == 403
    with app.app_context():
        assert db.session.get(Project, project_id).name == 'Old'


def test_update_project_without_changes_still_logged(app, client, make_user, create_project):
    alice = make_user('alice')
    project_id = create_project(alice, name='Same')

    resp = client.put(f'/api/projects/{project_id}', json={'name': 'Same'}, headers=alice.headers)

    assert resp.status_code == 200
    assert resp.get_json()['changes'] == {}
    with app.app_context():
        log = ActivityLog.query.filter_by(behavior='PROJECT_UPDATED').one()
        assert log.details == {'changes': {}}

# ============================================
# 刪除
# ============================================

def test_delete_project_by_non_creator_forbidden(app, client, make_user, create_project,
                                                add_member, create_task):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice)
    add_member(project_id, bob.id, role='owner')
    create_task(alice, project_id)

    with app.app_context():
        before = (Project.query.count(), ProjectMember.query.count(), Task.query.count(),
                  ActivityLog.query.count())

    resp = client.delete(f'/api/projects/{project_id}', headers=bob.headers)

    assert resp.status_code == 403
    with app.app_context():
        after = (Project.query.count(), ProjectMember.query.count(), Task.query.count(),
                 ActivityLog.query.count())
    assert after == before


def test_delete_project_cascades(app, client, make_user, create_project, create_task):
    alice = make_user('alice')
    project_id = create_project(alice)
    task_id = create_task(alice, project_id, assignees_ids=[alice.id])
    client.post(f'/api/tasks/{task_id}/comments', json={'content': 'hi'}, headers=alice.headers)

    resp = client.delete(f'/api/projects/{project_id}', headers=alice.headers)

    assert resp.status_code == 200
    with app.app_context():
        assert Project.query.count() == 0
        assert ProjectMember.query.count() == 0
        assert Task.query.count() == 0

        log = ActivityLog.query.filter_by(behavior='PROJECT_DELETED').one()
        assert log.details['projectId'] == project_id
        # 舊的 log 保留,只是關聯被清掉
        created = ActivityLog.query.filter_by(behavior='TASK_CREATED').one()
        assert created.project_id is None
        assert created.task_id is None


def test_delete_missing_project(client, make_user):
    alice = make_user('alice')

    resp = client.delete('/api/projects/42', headers=alice.headers)
    assert resp.status_code == 404

# ============================================
# 成員
# ============================================

def test_add_member(app, client, make_user, create_project):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice)

    resp = client.post(f'/api/projects/{project_id}/members',
                       json={'user_id': bob.id}, headers=alice.headers)

    assert resp.status_code == 201
    assert resp.get_json()['member'] == {'user_id': bob.id, 'role': 'member'}

    members = client.get(f'/api/projects/{project_id}/members', headers=bob.headers).get_json()
    assert members['total'] == 2
    assert {m['username'] for m in members['members']} == {'alice', 'bob'}


def test_add_member_twice_conflict(client, make_user, create_project):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice)
    url = f'/api/projects/{project_id}/members'

    client.post(url, json={'user_id': bob.id}, headers=alice.headers)
    resp = client.post(url, json={'user_id': bob.id}, headers=alice.headers)

    assert resp.status_code == 409


def test_add_unknown_user(client, make_user, create_project):
    alice = make_user('alice')
    project_id = create_project(alice)

    resp = client.post(f'/api/projects/{project_id}/members',
                       json={'user_id': 999}, headers=alice.headers)
    assert resp.status_code == 404


def test_member_cannot_add_members(client, make_user, create_project, add_member):
    alice = make_user('alice')
    bob = make_user('bob')
    carol = make_user('carol')
    project_id = create_project(alice)
    add_member(project_id, bob.id)

    resp = client.post(f'/api/projects/{project_id}/members',
                       json={'user_id': carol.id}, headers=bob.headers)
    assert resp.status_code == 403


def test_add_member_rejects_unknown_role(client, make_user, create_project):
    alice = make_user('alice')
    bob = make_user('bob')
    project_id = create_project(alice)

    resp = client.post(f'/api/projects/{project_id}/members',
                       json={'user_id': bob.id, 'role': 'admin'}, headers=alice.headers)
    assert resp.status_code == 400
