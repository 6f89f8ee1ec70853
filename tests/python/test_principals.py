"""
Unit tests for principal and role synchronization.

Tests cover:
- Name and index pattern formatting
- Role creation before principal creation
- Role deletion before principal deletion
- Fail-fast behavior without rollback
- Listing principals with role names only
"""

from __future__ import annotations

import pytest

from conftest import FakeLogStore
from logstore_lifecycle.exceptions import ConfigError, RemoteAPIError
from logstore_lifecycle.principals import (
    Principal,
    PrincipalSynchronizer,
    Role,
    RoleDefinition,
    RoleIndex,
    dashboard_installer_principal,
    format_name,
    index_pattern,
    linseed_principal,
)


def _role(name: str) -> Role:
    return Role(
        name=name,
        definition=RoleDefinition(
            cluster=["monitor"],
            indices=[RoleIndex(names=["logs-*"], privileges=["read"])],
        ),
    )


class TestNaming:
    """Tests for name and index pattern formatting."""

    def test_format_name(self) -> None:
        assert format_name("user", "cluster1", "tenant1") == "user_cluster1_tenant1"

    def test_format_name_keeps_empty_tenant_segment(self) -> None:
        assert format_name("user", "cluster1", "") == "user_cluster1_"

    def test_index_pattern_without_tenant(self) -> None:
        assert index_pattern("tigera_secure_ee_*", "*", ".*", "") == "tigera_secure_ee_*.*.*"

    def test_index_pattern_with_tenant(self) -> None:
        assert index_pattern("tigera_secure_ee_*", "*", ".*", "t1") == "tigera_secure_ee_*.t1.*.*"


class TestModels:
    """Tests for principal and role models."""

    def test_role_names_empty_list(self) -> None:
        assert Principal(username="u").role_names() == []

    def test_role_definition_omits_missing_applications(self) -> None:
        body = RoleDefinition(cluster=["monitor"]).to_body()
        assert body == {"cluster": ["monitor"], "indices": []}

    def test_linseed_principal(self) -> None:
        principal = linseed_principal("cluster", "t1")
        assert principal.username == "tigera-ee-linseed_cluster_t1"
        assert principal.role_names() == ["tigera-ee-linseed_cluster_t1"]
        definition = principal.roles[0].definition
        assert definition is not None
        assert "manage_ilm" in definition.cluster
        assert definition.indices[0].names == ["tigera_secure_ee_*.t1.*.*", "calico_*"]

    def test_dashboard_installer_principal(self) -> None:
        principal = dashboard_installer_principal("cluster", "")
        assert principal.username == "tigera-ee-dashboards-installer_cluster_"
        definition = principal.roles[0].definition
        assert definition is not None
        body = definition.to_body()
        assert body["indices"] == []
        assert body["cluster"] == []
        assert body["applications"] == [
            {"application": "kibana-.kibana", "privileges": ["all"], "resources": ["*"]}
        ]

    def test_password_not_in_repr(self) -> None:
        assert "hunter2" not in repr(Principal(username="u", password="hunter2"))


class TestCreatePrincipal:
    """Tests for PrincipalSynchronizer.create_principal."""

    def test_roles_created_before_principal(self, fake_store: FakeLogStore) -> None:
        principal = Principal(username="alice", password="pw", roles=[_role("r1"), _role("r2")])

        PrincipalSynchronizer(fake_store).create_principal(principal)

        assert fake_store.calls == [("put_role", "r1"), ("put_role", "r2"), ("put_user", "alice")]
        assert fake_store.users["alice"] == {"password": "pw", "roles": ["r1", "r2"]}
        assert fake_store.roles["r1"] == {
            "cluster": ["monitor"],
            "indices": [{"names": ["logs-*"], "privileges": ["read"]}],
        }

    def test_zero_roles_sends_empty_list(self, fake_store: FakeLogStore) -> None:
        PrincipalSynchronizer(fake_store).create_principal(Principal(username="bob", password="pw"))

        assert fake_store.users["bob"]["roles"] == []
        assert fake_store.calls == [("put_user", "bob")]

    def test_roles_without_definition_are_referenced_not_created(
        self, fake_store: FakeLogStore
    ) -> None:
        principal = Principal(username="carol", roles=[Role(name="builtin_viewer"), _role("own")])

        PrincipalSynchronizer(fake_store).create_principal(principal)

        assert fake_store.writes("put_role") == ["own"]
        assert fake_store.users["carol"]["roles"] == ["builtin_viewer", "own"]

    def test_role_failure_stops_without_rollback(self, fake_store: FakeLogStore) -> None:
        fake_store.failures[("put_role", "r2")] = RemoteAPIError.request_failed(
            "PUT", "/_security/role/r2", "rejected", status=400
        )
        principal = Principal(username="alice", roles=[_role("r1"), _role("r2"), _role("r3")])

        with pytest.raises(RemoteAPIError):
            PrincipalSynchronizer(fake_store).create_principal(principal)

        assert "r1" in fake_store.roles
        assert "r3" not in fake_store.roles
        assert "alice" not in fake_store.users
        assert ("delete_role", "r1") not in fake_store.calls

    def test_empty_role_name_rejected(self, fake_store: FakeLogStore) -> None:
        principal = Principal(username="alice", roles=[_role("")])

        with pytest.raises(ConfigError):
            PrincipalSynchronizer(fake_store).create_principal(principal)

        assert fake_store.calls == []


class TestDeletePrincipal:
    """Tests for PrincipalSynchronizer.delete_principal."""

    def test_roles_deleted_before_principal(self, fake_store: FakeLogStore) -> None:
        synchronizer = PrincipalSynchronizer(fake_store)
        principal = Principal(username="alice", roles=[_role("r1"), _role("r2")])
        synchronizer.create_principal(principal)
        fake_store.calls.clear()

        synchronizer.delete_principal(principal)

        assert fake_store.calls == [
            ("delete_role", "r1"),
            ("delete_role", "r2"),
            ("delete_user", "alice"),
        ]
        assert fake_store.users == {}
        assert fake_store.roles == {}

    def test_role_failure_keeps_principal(self, fake_store: FakeLogStore) -> None:
        synchronizer = PrincipalSynchronizer(fake_store)
        principal = Principal(username="alice", roles=[_role("r1"), _role("r2")])
        synchronizer.create_principal(principal)
        fake_store.failures[("delete_role", "r2")] = RemoteAPIError.request_failed(
            "DELETE", "/_security/role/r2", "unavailable", status=503
        )

        with pytest.raises(RemoteAPIError):
            synchronizer.delete_principal(principal)

        assert "r1" not in fake_store.roles
        assert "alice" in fake_store.users
        assert fake_store.writes("delete_user") == []

    def test_already_deleted_is_not_an_error(self, fake_store: FakeLogStore) -> None:
        principal = Principal(username="ghost", roles=[_role("gone")])

        PrincipalSynchronizer(fake_store).delete_principal(principal)

        assert fake_store.calls == [("delete_role", "gone"), ("delete_user", "ghost")]


class TestListPrincipals:
    """Tests for PrincipalSynchronizer.list_principals."""

    def test_returns_role_names_only(self, fake_store: FakeLogStore) -> None:
        synchronizer = PrincipalSynchronizer(fake_store)
        synchronizer.create_principal(Principal(username="alice", roles=[_role("r1")]))
        synchronizer.create_principal(Principal(username="bob"))

        principals = {p.username: p for p in synchronizer.list_principals()}

        assert set(principals) == {"alice", "bob"}
        assert principals["alice"].role_names() == ["r1"]
        assert principals["alice"].roles[0].definition is None
        assert principals["bob"].roles == []

    def test_list_error_propagates(self, fake_store: FakeLogStore) -> None:
        fake_store.failures[("get_users", "")] = RemoteAPIError.request_failed(
            "GET", "/_security/user", "unauthorized", status=401
        )

        with pytest.raises(RemoteAPIError):
            PrincipalSynchronizer(fake_store).list_principals()
