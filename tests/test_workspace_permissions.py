"""Tests for workspace role checks and the Flask access decorator."""

import pytest
from flask import Flask, g, jsonify

from utils.workspace_permissions import (
    WorkspaceAccessError,
    WorkspaceRole,
    can_assign,
    can_delete,
    can_export,
    can_manage,
    check_workspace_access,
    get_permission_context,
    require_admin_access,
    require_owner_access,
    requires_workspace_access,
    verify_user_access,
)

MEMBERS = {
    ('u-owner', 'ws-1'): 'OWNER',
    ('u-admin', 'ws-1'): WorkspaceRole.ADMIN,
    ('u-member', 'ws-1'): 'member',
    ('u-odd', 'ws-1'): 'GUEST',
}


def lookup(user_id, workspace_id):
    return MEMBERS.get((user_id, workspace_id))


def test_missing_user_is_401():
    for user in (None, {}, {'id': None}):
        with pytest.raises(WorkspaceAccessError) as exc:
            check_workspace_access(user, 'ws-1', lookup)
        assert exc.value.status_code == 401


def test_non_member_is_403():
    with pytest.raises(WorkspaceAccessError) as exc:
        check_workspace_access({'id': 'u-owner'}, 'ws-2', lookup)
    assert exc.value.status_code == 403
    assert exc.value.workspace_id == 'ws-2'


def test_member_roles_are_normalised():
    assert check_workspace_access({'id': 'u-member'}, 'ws-1', lookup).role is WorkspaceRole.MEMBER
    assert check_workspace_access({'id': 'u-admin'}, 'ws-1', lookup).role is WorkspaceRole.ADMIN


def test_user_objects_with_id_attribute_are_accepted():
    class User:
        id = 'u-owner'

    assert check_workspace_access(User(), 'ws-1', lookup).is_manager


def test_unknown_role_is_403():
    with pytest.raises(WorkspaceAccessError, match='Unknown workspace role') as exc:
        check_workspace_access({'id': 'u-odd'}, 'ws-1', lookup)
    assert exc.value.status_code == 403


def test_managing_requires_owner_or_admin():
    assert require_admin_access({'id': 'u-owner'}, 'ws-1', lookup).role is WorkspaceRole.OWNER
    assert require_admin_access({'id': 'u-admin'}, 'ws-1', lookup).role is WorkspaceRole.ADMIN
    with pytest.raises(WorkspaceAccessError, match='manage brands') as exc:
        require_admin_access({'id': 'u-member'}, 'ws-1', lookup, resource='brands')
    assert exc.value.status_code == 403


def test_owner_only_checks():
    assert require_owner_access({'id': 'u-owner'}, 'ws-1', lookup).user_id == 'u-owner'
    with pytest.raises(WorkspaceAccessError, match='owner access required'):
        require_owner_access({'id': 'u-admin'}, 'ws-1', lookup)


def test_role_predicates():
    assert can_manage(WorkspaceRole.ADMIN)
    assert not can_manage(WorkspaceRole.MEMBER)
    assert can_manage(WorkspaceRole.MEMBER, is_assigned=True)
    assert can_delete(WorkspaceRole.OWNER) and not can_delete(WorkspaceRole.MEMBER)
    assert can_assign(WorkspaceRole.ADMIN) and not can_assign(WorkspaceRole.MEMBER)
    assert all(can_export(role) for role in WorkspaceRole)


def test_verify_user_access_for_own_resources():
    own = verify_user_access({'id': 'u-member'}, 'ws-1', lookup, resource_user_id='u-member')
    other = verify_user_access({'id': 'u-member'}, 'ws-1', lookup, resource_user_id='u-admin')
    admin = verify_user_access({'id': 'u-admin'}, 'ws-1', lookup, resource_user_id='u-member')
    assert own == {'has_access': True, 'is_owner': True, 'role': WorkspaceRole.MEMBER}
    assert other['has_access'] is False
    assert admin['has_access'] is True and admin['is_owner'] is False


def test_permission_context():
    member = get_permission_context({'id': 'u-member'}, 'ws-1', lookup)
    assert member['role'] is WorkspaceRole.MEMBER
    assert not member['can_delete'] and not member['can_manage_alerts']
    assert member['can_export']
    owner = get_permission_context({'id': 'u-owner'}, 'ws-1', lookup)
    assert owner['can_manage_cases'] and owner['can_assign']


class TestRequiresWorkspaceAccess:

    def setup_method(self):
        app = Flask(__name__)
        self.current_user = None

        @app.before_request
        def _load_user():
            g.user = self.current_user

        @app.route('/workspaces/<workspace_id>/alerts')
        @requires_workspace_access(lookup)
        def list_alerts(workspace_id):
            return jsonify({'role': g.workspace_access.role.value})

        @app.route('/brands', methods=['DELETE'])
        @requires_workspace_access(lookup, manage=True, resource='brands')
        def delete_brand():
            return jsonify({'deleted': True})

        self.client = app.test_client()

    def test_anonymous_gets_401(self):
        resp = self.client.get('/workspaces/ws-1/alerts')
        assert resp.status_code == 401
        assert resp.get_json() == {'error': 'Authentication required'}

    def test_member_can_read(self):
        self.current_user = {'id': 'u-member'}
        resp = self.client.get('/workspaces/ws-1/alerts')
        assert resp.status_code == 200
        assert resp.get_json() == {'role': 'MEMBER'}

    def test_outsider_gets_403(self):
        self.current_user = {'id': 'u-member'}
        assert self.client.get('/workspaces/ws-9/alerts').status_code == 403

    def test_manage_requires_admin(self):
        self.current_user = {'id': 'u-member'}
        resp = self.client.delete('/brands?workspace_id=ws-1')
        assert resp.status_code == 403
        assert 'manage brands' in resp.get_json()['error']

        self.current_user = {'id': 'u-admin'}
        assert self.client.delete('/brands?workspace_id=ws-1').status_code == 200

    def test_missing_workspace_is_400(self):
        self.current_user = {'id': 'u-admin'}
        assert self.client.delete('/brands').status_code == 400
