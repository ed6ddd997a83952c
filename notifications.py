# ============================================
# 到期提醒
# 前端用來顯示「快到期的任務」通知
# ============================================

from datetime import date
from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import jwt_required
from models import db
from auth import current_actor_id
import queries

notifications_bp = Blueprint('notifications', __name__)


def today():
    return date.today()


@notifications_bp.route('/tasks/due_date', methods=['GET'])
@jwt_required()
def get_tasks_due_soon():
    """指派給我、今天起 DUE_SOON_DAYS 天內到期的任務 (最早到期的在前)"""
    tasks = queries.list_tasks_due_soon(
        db.session,
        current_actor_id(),
        today(),
        days=current_app.config.get('DUE_SOON_DAYS', 7)
    )
    return jsonify(tasks), 200
