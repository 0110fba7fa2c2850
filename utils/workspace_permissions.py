"""Workspace role checks.

Membership storage is not touched here: callers pass a `lookup(user_id,
workspace_id)` returning the member's role, or None for non-members.
Provides:
    - WorkspaceAccessError carrying the HTTP status to return (401 / 403)
    - check_workspace_access / require_admin_access / require_owner_access
    - role predicates (can_manage, can_delete, can_assign, can_export)
    - verify_user_access / get_permission_context
    - requires_workspace_access decorator for Flask views
"""
from __future__ import annotations
import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from logging_config import get_logger

logger = get_logger(__name__)


class WorkspaceRole(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


MANAGER_ROLES = frozenset({WorkspaceRole.OWNER, WorkspaceRole.ADMIN})

MembershipLookup = Callable[[str, str], Optional[Union[WorkspaceRole, str]]]


class WorkspaceAccessError(Exception):
    """Raised when a workspace check fails; carries the HTTP status to return."""
    def __init__(self, status_code: int, message: str, workspace_id: str | None = None):
        self.status_code = status_code
        self.message = message
        self.workspace_id = workspace_id
        super().__init__(self.message)


@dataclass(frozen=True)
class WorkspaceAccess:
    user_id: str
    workspace_id: str
    role: WorkspaceRole

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES


def _user_id(user: Any) -> Optional[str]:
    if not user:
        return None
    if isinstance(user, Mapping):
        return user.get('id')
    return getattr(user, 'id', None)


def _deny(status_code: int, message: str, workspace_id: str, user_id: Optional[str]) -> WorkspaceAccessError:
    logger.warning("workspace_access_denied", status=status_code, workspace_id=workspace_id, user_id=user_id)
    return WorkspaceAccessError(status_code, message, workspace_id)


def check_workspace_access(user: Any, workspace_id: str, lookup: MembershipLookup) -> WorkspaceAccess:
    """401 without a user, 403 without a membership; otherwise the member's role."""
    user_id = _user_id(user)
    if not user_id:
        raise _deny(401, 'Authentication required', workspace_id, None)

    role = lookup(user_id, workspace_id)
    if role is None:
        raise _deny(403, 'You do not have access to this workspace', workspace_id, user_id)
    try:
        role = WorkspaceRole(str(getattr(role, 'value', role)).upper())
    except ValueError:
        raise _deny(403, f'Unknown workspace role: {role}', workspace_id, user_id) from None
    return WorkspaceAccess(user_id=user_id, workspace_id=workspace_id, role=role)


def require_admin_access(user: Any, workspace_id: str, lookup: MembershipLookup,
                         resource: str | None = None) -> WorkspaceAccess:
    access = check_workspace_access(user, workspace_id, lookup)
    if not access.is_manager:
        message = f'Insufficient permissions to manage {resource}' if resource else 'Admin or Owner access required'
        raise _deny(403, message, workspace_id, access.user_id)
    return access


def require_owner_access(user: Any, workspace_id: str, lookup: MembershipLookup) -> WorkspaceAccess:
    access = check_workspace_access(user, workspace_id, lookup)
    if access.role is not WorkspaceRole.OWNER:
        raise _deny(403, 'Workspace owner access required', workspace_id, access.user_id)
    return access


# ---------------- Role predicates ----------------

def can_manage(role: WorkspaceRole, is_assigned: bool = False) -> bool:
    """Owners and admins manage everything; members only what is assigned to them."""
    return role in MANAGER_ROLES or is_assigned

def can_delete(role: WorkspaceRole) -> bool:
    return role in MANAGER_ROLES

def can_assign(role: WorkspaceRole) -> bool:
    return role in MANAGER_ROLES

def can_export(role: WorkspaceRole) -> bool:
    return isinstance(role, WorkspaceRole)


def verify_user_access(user: Any, workspace_id: str, lookup: MembershipLookup,
                       resource_user_id: str | None = None) -> Dict[str, Any]:
    """Managers reach every resource; members reach the ones they own."""
    access = check_workspace_access(user, workspace_id, lookup)
    is_owner = resource_user_id is not None and resource_user_id == access.user_id
    return {
        'has_access': access.is_manager or is_owner,
        'is_owner': is_owner,
        'role': access.role,
    }


def get_permission_context(user: Any, workspace_id: str, lookup: MembershipLookup) -> Dict[str, Any]:
    access = check_workspace_access(user, workspace_id, lookup)
    role = access.role
    return {
        'user_id': access.user_id,
        'role': role,
        'can_manage_alerts': can_manage(role),
        'can_manage_incidents': can_manage(role),
        'can_manage_cases': can_manage(role),
        'can_delete': can_delete(role),
        'can_assign': can_assign(role),
        'can_export': can_export(role),
    }


def requires_workspace_access(lookup: MembershipLookup, manage: bool = False, resource: str | None = None):
    """Flask view decorator.

    The user comes from `g.user`, the workspace from the `workspace_id` view
    argument or query parameter. Failures become `{"error": ...}` responses
    with the error's status; on success the view sees `g.workspace_access`.
    """
    def decorator(fn: Callable):
        @functools.wraps(fn)
        def wrapped(*args, **kwargs):
            from flask import g, jsonify, request
            workspace_id = kwargs.get('workspace_id') or request.args.get('workspace_id')
            if not workspace_id:
                return jsonify({'error': 'workspace_id is required'}), 400
            user = getattr(g, 'user', None)
            try:
                if manage:
                    g.workspace_access = require_admin_access(user, workspace_id, lookup, resource)
                else:
                    g.workspace_access = check_workspace_access(user, workspace_id, lookup)
            except WorkspaceAccessError as e:
                return jsonify({'error': e.message}), e.status_code
            return fn(*args, **kwargs)
        return wrapped
    return decorator


__all__ = [
    'WorkspaceRole',
    'WorkspaceAccess',
    'WorkspaceAccessError',
    'MANAGER_ROLES',
    'check_workspace_access',
    'require_admin_access',
    'require_owner_access',
    'can_manage',
    'can_delete',
    'can_assign',
    'can_export',
    'verify_user_access',
    'get_permission_context',
    'requires_workspace_access',
]
