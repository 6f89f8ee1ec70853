"""
Principals (users) and roles in the log store.

Roles are created before the principal that references them and deleted
before the principal is removed. Both directions stop at the first error
without undoing what was already done; the next reconciliation pass
converges.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from logstore_lifecycle.exceptions import ConfigError, NotFoundError
from logstore_lifecycle.logging import get_logger

if TYPE_CHECKING:
    from logstore_lifecycle.client import LogStoreClient

logger = get_logger(__name__)

LINSEED_USERNAME = "tigera-ee-linseed"
DASHBOARD_INSTALLER_USERNAME = "tigera-ee-dashboards-installer"


class RoleIndex(BaseModel):
    """Privileges granted on a set of index name patterns."""

    names: list[str] = Field(default_factory=list)
    privileges: list[str] = Field(default_factory=list)


class Application(BaseModel):
    """Privileges granted within an application (e.g. the dashboards UI)."""

    application: str
    privileges: list[str] = Field(default_factory=list)
    resources: list[str] = Field(default_factory=list)


class RoleDefinition(BaseModel):
    """Cluster, index and application privileges bundled into a role."""

    cluster: list[str] = Field(default_factory=list)
    indices: list[RoleIndex] = Field(default_factory=list)
    applications: list[Application] | None = None

    def to_body(self) -> dict[str, Any]:
        """Request body for storing the role; absent applications are omitted."""
        return self.model_dump(exclude_none=True)


class Role(BaseModel):
    """A named role, with its definition when this side owns the role."""

    name: str
    definition: RoleDefinition | None = None


class Principal(BaseModel):
    """A user of the store together with the roles attached to it."""

    username: str
    password: str = Field(default="", repr=False)
    roles: list[Role] = Field(default_factory=list)

    def role_names(self) -> list[str]:
        """Names of all attached roles; an empty list when there are none."""
        return [role.name for role in self.roles]


def format_name(name: str, cluster_id: str, tenant_id: str) -> str:
    """Qualify a principal or role name with cluster and tenant."""
    return f"{name}_{cluster_id}_{tenant_id}"


def index_pattern(prefix: str, cluster: str, suffix: str, tenant: str) -> str:
    """Index name pattern for a cluster, including the tenant segment when set."""
    if tenant:
        return f"{prefix}.{tenant}.{cluster}{suffix}"
    return f"{prefix}.{cluster}{suffix}"


def linseed_principal(cluster_id: str, tenant: str) -> Principal:
    """Principal used by the log ingestion API to write and read all log indices."""
    username = format_name(LINSEED_USERNAME, cluster_id, tenant)
    return Principal(
        username=username,
        roles=[
            Role(
                name=username,
                definition=RoleDefinition(
                    cluster=["monitor", "manage_index_templates", "manage_ilm"],
                    indices=[
                        RoleIndex(
                            # Both single-index and multi-index name formats
                            names=[index_pattern("tigera_secure_ee_*", "*", ".*", tenant), "calico_*"],
                            privileges=["create_index", "write", "manage", "read"],
                        )
                    ],
                ),
            )
        ],
    )


def dashboard_installer_principal(cluster_id: str, tenant: str) -> Principal:
    """Principal that installs the dashboards into the UI's application space."""
    username = format_name(DASHBOARD_INSTALLER_USERNAME, cluster_id, tenant)
    return Principal(
        username=username,
        roles=[
            Role(
                name=username,
                definition=RoleDefinition(
                    indices=[],
                    applications=[
                        Application(
                            application="kibana-.kibana",
                            privileges=["all"],
                            resources=["*"],
                        )
                    ],
                ),
            )
        ],
    )


class PrincipalSynchronizer:
    """Creates, deletes and lists principals and their roles."""

    def __init__(self, client: LogStoreClient) -> None:
        self._client = client

    def create_roles(self, *roles: Role, timeout: float | None = None) -> None:
        """
        Create or update roles, stopping at the first failure.

        Raises:
            ConfigError: If a role has no name.
            RemoteAPIError: If the store rejects a role.
        """
        for role in roles:
            if role.definition is None:
                continue
            if not role.name:
                raise ConfigError.validation_failed("role.name", role.name, "role name is empty")
            self._client.put_role(role.name, role.definition.to_body(), timeout=timeout)
            logger.debug("role_applied", role=role.name)

    def delete_roles(self, *roles: Role, timeout: float | None = None) -> None:
        """Delete roles, stopping at the first failure. Missing roles are skipped."""
        for role in roles:
            if not role.name:
                raise ConfigError.validation_failed("role.name", role.name, "role name is empty")
            try:
                self._client.delete_role(role.name, timeout=timeout)
            except NotFoundError:
                logger.debug("role_already_deleted", role=role.name)
                continue
            logger.debug("role_deleted", role=role.name)

    def create_principal(self, principal: Principal, timeout: float | None = None) -> None:
        """
        Create or update a principal after creating the roles it owns.

        Raises:
            ConfigError: If a role has no name.
            RemoteAPIError: If a role or the principal is rejected.
        """
        self.create_roles(*principal.roles, timeout=timeout)

        body = {
            "password": principal.password,
            "roles": principal.role_names(),
        }
        try:
            self._client.put_user(principal.username, body, timeout=timeout)
        except Exception as e:
            logger.error("principal_create_failed", principal=principal.username, error=str(e))
            raise
        logger.info(
            "principal_applied",
            principal=principal.username,
            roles=body["roles"],
        )

    def delete_principal(self, principal: Principal, timeout: float | None = None) -> None:
        """
        Delete the principal's roles, then the principal.

        Raises:
            RemoteAPIError: If a role or the principal cannot be deleted.
        """
        self.delete_roles(*principal.roles, timeout=timeout)

        try:
            self._client.delete_user(principal.username, timeout=timeout)
        except NotFoundError:
            logger.debug("principal_already_deleted", principal=principal.username)
            return
        except Exception as e:
            logger.error("principal_delete_failed", principal=principal.username, error=str(e))
            raise
        logger.info("principal_deleted", principal=principal.username)

    def list_principals(self, timeout: float | None = None) -> list[Principal]:
        """
        List all principals in the store.

        Only role names are returned; the listing API does not include
        role definitions.
        """
        try:
            users = self._client.get_users(timeout=timeout)
        except Exception as e:
            logger.error("principal_list_failed", error=str(e))
            raise

        principals: list[Principal] = []
        for username, data in users.items():
            role_names = (data.get("roles") or []) if isinstance(data, dict) else []
            principals.append(
                Principal(username=username, roles=[Role(name=name) for name in role_names])
            )
        return principals
