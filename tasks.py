from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from models import db
from schemas import CommentSchema, TaskSchema, load_request
from policy import load_project, load_task, require_membership
from auth import current_actor_id
import services
import queries

tasks_bp = Blueprint('tasks', __name__)

# ============================================
# 專案的任務
# ============================================

@tasks_bp.route('/projects/<int:project_id>/tasks', methods=['GET'])
@jwt_required()
def get_project_tasks(project_id):
    """專案的任務列表,附上建立者與負責人"""
    load_project(db.session, project_id)
    require_membership(db.session, current_actor_id(), project_id)

    return jsonify(queries.list_project_tasks(db.session, project_id)), 200


@tasks_bp.route('/projects/<int:project_id>/tasks', methods=['POST'])
@jwt_required()
def create_task(project_id):
    """
    在專案中建立任務

    支援 assignees_ids (多人) 與舊版的 assigned_to_user_id
    """
    result = load_request(TaskSchema)
    task = services.create_task(db.session, current_actor_id(), project_id, result)

    return jsonify({
        'message': 'Task created successfully',
        'task_id': task.id
    }), 201

# ============================================
# 單一任務
# ============================================

@tasks_bp.route('/tasks/<int:task_id>', methods=['GET'])
@jwt_required()
def get_task(task_id):
    """任務詳細資料 (含負責人與評論)"""
    target = load_task(db.session, task_id)
    require_membership(db.session, current_actor_id(), target.project_id)

    return jsonify(queries.get_task_detail(db.session, task_id)), 200


@tasks_bp.route('/tasks/<int:task_id>', methods=['PUT'])
@jwt_required()
def update_task(task_id):
    """
    更新任務

    權限: 任務建立者,或專案 manager/owner。
    指派會整組取代,沒給就清空。
    """
    result = load_request(TaskSchema)
    task = services.update_task(db.session, current_actor_id(), task_id, result)

    return jsonify({
        'message': 'Task updated successfully',
        'task': queries.serialize_task(task)
    }), 200


@tasks_bp.route('/tasks/<int:task_id>', methods=['DELETE'])
@jwt_required()
def delete_task(task_id):
    """刪除任務 (只有專案 manager/owner)"""
    services.delete_task(db.session, current_actor_id(), task_id)
    return jsonify({'message': 'Task deleted successfully'}), 200

# ============================================
# 任務評論
# ============================================

@tasks_bp.route('/tasks/<int:task_id>/comments', methods=['GET'])
@jwt_required()
def get_task_comments(task_id):
    target = load_task(db.session, task_id)
    require_membership(db.session, current_actor_id(), target.project_id)

    return jsonify(queries.list_task_comments(db.session, task_id)), 200


@tasks_bp.route('/tasks/<int:task_id>/comments', methods=['POST'])
@jwt_required()
def create_task_comment(task_id):
    """新增任務評論"""
    result = load_request(CommentSchema)
    comment = services.add_comment(db.session, current_actor_id(), task_id, result['content'])

    return jsonify({
        'message': 'Comment added successfully',
        'comment_id': comment.id
    }), 201
