from __future__ import annotations

from ..extensions import db
from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Branch, User
from .concurrency import lock_for_update, run_with_retry


def create_branch(name: str, address: str | None = None, manager_id: int | None = None) -> Branch:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Branch name is required", {"field": "name"})

    def _op():
        if db.session.query(Branch.id).filter_by(name=name).first() is not None:
            raise ConflictError(f"Branch {name!r} already exists", {"name": name})
        if manager_id is not None and db.session.get(User, manager_id) is None:
            raise NotFoundError(f"User {manager_id} not found", {"user_id": manager_id})

        branch = Branch(name=name, address=address, manager_id=manager_id)
        db.session.add(branch)
        db.session.commit()
        return branch

    return run_with_retry(_op, operation="create_branch")


def assign_manager(branch_id: int, manager_id: int | None) -> Branch:
    """Set (or clear, with None) the single manager of a branch."""
    def _op():
        branch = lock_for_update(db.session.query(Branch).filter_by(id=branch_id)).first()
        if branch is None:
            raise NotFoundError(f"Branch {branch_id} not found", {"branch_id": branch_id})
        if manager_id is not None and db.session.get(User, manager_id) is None:
            raise NotFoundError(f"User {manager_id} not found", {"user_id": manager_id})

        branch.manager_id = manager_id
        db.session.commit()
        return branch

    return run_with_retry(_op, operation="assign_manager")


def get_branch(branch_id: int) -> Branch | None:
    return db.session.get(Branch, branch_id)


def list_branch_ids() -> list[int]:
    return [row.id for row in db.session.query(Branch.id).order_by(Branch.id.asc()).all()]
