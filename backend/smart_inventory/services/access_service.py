"""
Branch scoping for the request layer.

Super admins see every branch, branch managers the branches they manage,
sales users their home branch. The core services never call this; they
take an explicit branch set.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Branch, User, ROLE_BRANCH_MANAGER, ROLE_SUPER_ADMIN


def branch_scope_for(user: User) -> list[int]:
    if user.role_name == ROLE_SUPER_ADMIN:
        rows = db.session.query(Branch.id).order_by(Branch.id.asc()).all()
        return [row.id for row in rows]

    if user.role_name == ROLE_BRANCH_MANAGER:
        rows = db.session.query(Branch.id).filter_by(manager_id=user.id).order_by(Branch.id.asc()).all()
        return [row.id for row in rows]

    return [user.branch_id] if user.branch_id is not None else []


def can_access_branch(user: User, branch_id: int) -> bool:
    return branch_id in branch_scope_for(user)
