"""
Account management shared by the auth routes, the admin API and manage.py.
"""

import logging

from werkzeug.security import generate_password_hash

from app.errors import NotFound, UsernameTaken
from app.models.user import ROLE_USER, ROLES
from app.storage import get_storage

logger = logging.getLogger(__name__)


def create_user(username, password, full_name, role=ROLE_USER):
    if role not in ROLES:
        raise ValueError(f"Unknown role {role!r}")

    storage = get_storage()
    with storage.transaction(("username", username.lower())):
        if storage.get_user_by_username(username):
            raise UsernameTaken(f"Username {username} already exists")
        user = storage.create_user(
            username=username,
            password_hash=generate_password_hash(password),
            full_name=full_name,
            role=role,
        )

    logger.info(f"Created {role} account {user.username} (id {user.id})")
    return user


def authenticate(username, password):
    """Return the user when the credentials match, otherwise None"""
    user = get_storage().get_user_by_username(username)
    if user and user.check_password(password):
        return user
    return None


def record_login(user):
    storage = get_storage()
    with storage.transaction():
        storage.record_login(user.id)


def list_users():
    return get_storage().list_users()


def deactivate_user(user_id):
    storage = get_storage()
    with storage.transaction():
        if not storage.deactivate_user(user_id):
            raise NotFound(f"User {user_id} not found")
    logger.info(f"Deactivated user {user_id}")
    return storage.get_user(user_id)
