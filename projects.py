from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from models import db
from schemas import AddMemberSchema, ProjectSchema, load_request
from policy import load_project, require_membership
from auth import current_actor_id
import services
import queries

projects_bp = Blueprint('projects', __name__)

# ============================================
# 建立專案
# ============================================

@projects_bp.route('', methods=['POST'])
@jwt_required()
def create_project():
    """
    建立新專案

    專案、建立者的 manager 成員資料在同一個 transaction 寫入
    """
    result = load_request(ProjectSchema)
    project = services.create_project(db.session, current_actor_id(), result)

    return jsonify({
        'message': 'Project created successfully',
        'project_id': project.id
    }), 201

# ============================================
# 查詢我的所有專案
# ============================================

@projects_bp.route('', methods=['GET'])
@jwt_required()
def get_my_projects():
    """查詢我參與的所有專案 (新的在前)"""
    projects = queries.list_projects_for_user(db.session, current_actor_id())
    return jsonify(projects), 200

# ============================================
# 查詢單一專案
# ============================================

@projects_bp.route('/<int:project_id>', methods=['GET'])
@jwt_required()
def get_project(project_id):
    """專案資料 + 成員列表 (成員才能看)"""
    load_project(db.session, project_id)
    require_membership(db.session, current_actor_id(), project_id)

    return jsonify(queries.get_project_detail(db.session, project_id)), 200

# ============================================
# 更新專案
# ============================================

@projects_bp.route('/<int:project_id>', methods=['PUT'])
@jwt_required()
def update_project(project_id):
    """更新專案 (建立者或 manager/owner)"""
    result = load_request(ProjectSchema)
    project, changes = services.update_project(
        db.session, current_actor_id(), project_id, result
    )

    return jsonify({
        'message': 'Project updated successfully',
        'project': queries.serialize_project(project),
        'changes': changes
    }), 200

# ============================================
# 刪除專案
# ============================================

@projects_bp.route('/<int:project_id>', methods=['DELETE'])
@jwt_required()
def delete_project(project_id):
    """刪除專案 (只有建立者可以)"""
    services.delete_project(db.session, current_actor_id(), project_id)
    return jsonify({'message': 'Project deleted successfully'}), 200

# ============================================
# 專案成員管理
# ============================================

@projects_bp.route('/<int:project_id>/members', methods=['GET'])
@jwt_required()
def get_project_members(project_id):
    load_project(db.session, project_id)
    require_membership(db.session, current_actor_id(), project_id)

    members = queries.list_project_members(db.session, project_id)
    return jsonify({'members': members, 'total': len(members)}), 200


@projects_bp.route('/<int:project_id>/members', methods=['POST'])
@jwt_required()
def add_project_member(project_id):
    """新增專案成員 (建立者或 manager/owner)"""
    result = load_request(AddMemberSchema)
    member = services.add_member(db.session, current_actor_id(), project_id, result)

    return jsonify({
        'message': 'Member added successfully',
        'member': {
            'user_id': member.user_id,
            'role': member.role
        }
    }), 201
