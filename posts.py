"""
文章 (部落格)

跟專案/任務完全獨立,只有作者本人可以修改或刪除。
"""
from flask import Blueprint, jsonify
from flask_jwt_extended import jwt_required
from models import db, Post
from schemas import PostSchema, load_request
from transactions import atomic
from auth import current_actor_id
from errors import Forbidden, NotFound
import logging

posts_bp = Blueprint('posts', __name__)
logger = logging.getLogger(__name__)


def serialize_post(post):
    return {
        'id': post.id,
        'title': post.title,
        'content': post.content,
        'author_id': post.author_id,
        'author_name': post.author.username,
        'created_at': post.created_at.isoformat() if post.created_at else None
    }


def get_own_post(post_id, user_id):
    post = db.session.get(Post, post_id)
    if not post:
        raise NotFound('Post not found')
    if post.author_id != user_id:
        raise Forbidden('Only the author can modify this post')
    return post


@posts_bp.route('', methods=['POST'])
@jwt_required()
def create_post():
    result = load_request(PostSchema)

    with atomic(db.session):
        post = Post(
            title=result['title'],
            content=result['content'],
            author_id=current_actor_id()
        )
        db.session.add(post)
        db.session.flush()

    logger.info(f"Post created: {post.id} by user {post.author_id}")

    return jsonify({'message': 'Post created successfully', 'id': post.id}), 201


@posts_bp.route('', methods=['GET'])
def get_posts():
    """所有文章 (新的在前),不需要登入"""
    posts = Post.query.order_by(Post.created_at.desc(), Post.id.desc()).all()
    return jsonify([serialize_post(p) for p in posts]), 200


@posts_bp.route('/<int:post_id>', methods=['GET'])
def get_post(post_id):
    post = db.session.get(Post, post_id)
    if not post:
        raise NotFound('Post not found')
    return jsonify(serialize_post(post)), 200


@posts_bp.route('/<int:post_id>', methods=['PUT'])
@jwt_required()
def update_post(post_id):
    result = load_request(PostSchema)

    with atomic(db.session):
        post = get_own_post(post_id, current_actor_id())
        post.title = result['title']
        post.content = result['content']

    return jsonify({'message': 'Post updated successfully'}), 200


@posts_bp.route('/<int:post_id>', methods=['DELETE'])
@jwt_required()
def delete_post(post_id):
    with atomic(db.session):
        post = get_own_post(post_id, current_actor_id())
        db.session.delete(post)

    logger.info(f"Post deleted: {post_id}")

    return jsonify({'message': 'Post deleted successfully'}), 200
