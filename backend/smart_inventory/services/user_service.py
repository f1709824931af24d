from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import DEFAULT_ROLES, Role, User


def create_default_roles() -> list[Role]:
    """Create super_admin, branch_manager and sales_user. Safe to call repeatedly."""
    roles = []
    for name in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(name=name).first()
        if role is None:
            role = Role(name=name)
            db.session.add(role)
        roles.append(role)
    db.session.commit()
    return roles


def create_user(name: str, email: str, role_name: str, branch_id: int | None = None) -> User:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("email is required", {"field": "email"})

    role = db.session.query(Role).filter_by(name=role_name).first()
    if role is None:
        raise NotFoundError(f"Role {role_name!r} not found", {"role": role_name})

    if db.session.query(User.id).filter_by(email=email).first() is not None:
        raise ConflictError(f"User {email!r} already exists", {"email": email})

    user = User(name=name, email=email, role_id=role.id, branch_id=branch_id, is_active=True)
    db.session.add(user)
    db.session.commit()
    return user


def get_active_user(user_id: int) -> User | None:
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user
