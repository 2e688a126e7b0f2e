"""
Integration tests for RoleBindingService.

Tests cover:
- Lazy node creation and deletion on last revoke
- Bounded retry on concurrent modification
- Resource and role validation
- Authorization snapshot refresh
"""

import pytest

from controlplane.varadhi_server.auth import DefaultAuthorizationProvider
from controlplane.varadhi_server.entities import (
    ROOT_RESOURCE_ID,
    IamPolicyRequest,
    Org,
    Project,
    ResourceAction,
    ResourceType,
    RoleBindingNode,
    Team,
    TopicResource,
)
from controlplane.varadhi_server.errors import (
    InvalidOperationError,
    InvalidResourceError,
    MetaStoreError,
    ResourceNotFoundError,
)
from controlplane.varadhi_server.services import DEFAULT_MAX_ATTEMPTS, RoleBindingService

ORG_NODE_PATH = "/varadhi/roleBindings/ORG/public"


@pytest.fixture
async def tenancy(meta_store):
    await meta_store.create_org(Org("public"))
    await meta_store.create_team(Team("team_rocket", org="public"))
    await meta_store.create_project(Project("default", org="public", team="team_rocket"))
    await meta_store.create_topic_resource(TopicResource("topic001", project="default"))


@pytest.fixture
def service(meta_store):
    return RoleBindingService(meta_store)


class TestSetIamPolicy:
    """Grant and revoke through set_iam_policy."""

    @pytest.mark.asyncio
    async def test_first_grant_creates_node(self, service, meta_store, tenancy):
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        assert node.roles_for("alice") == {"org.admin"}
        assert node.version == 0
        stored = await meta_store.get_role_binding_node(ResourceType.ORG, "public")
        assert stored.role_bindings == {"alice": {"org.admin"}}

    @pytest.mark.asyncio
    async def test_second_grant_updates_node(self, service, tenancy):
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("bob", {"team.admin"})
        )
        assert node.version == 1
        assert set(node.role_bindings) == {"alice", "bob"}

    @pytest.mark.asyncio
    async def test_roles_are_replaced(self, service, tenancy):
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin", "team.admin"})
        )
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"topic.read"})
        )
        assert node.roles_for("alice") == {"topic.read"}

    @pytest.mark.asyncio
    async def test_last_revoke_deletes_node(self, service, meta_store, tenancy):
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", set())
        )
        assert node.is_empty()
        assert not await meta_store.role_binding_node_exists(ResourceType.ORG, "public")

    @pytest.mark.asyncio
    async def test_empty_grant_on_missing_node_persists_nothing(
        self, service, meta_store, tenancy
    ):
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", set())
        )
        assert node.is_empty()
        assert not await meta_store.role_binding_node_exists(ResourceType.ORG, "public")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resource_type, resource_id",
        [
            (ResourceType.ROOT, ROOT_RESOURCE_ID),
            (ResourceType.ORG, "public"),
            (ResourceType.TEAM, "public:team_rocket"),
            (ResourceType.PROJECT, "default"),
            (ResourceType.TOPIC, "default:topic001"),
        ],
    )
    async def test_supported_kinds(self, service, tenancy, resource_type, resource_id):
        node = await service.set_iam_policy(
            resource_type, resource_id, IamPolicyRequest("alice", {"topic.read"})
        )
        assert node.resource_type is resource_type
        assert node.resource_id == resource_id


class TestValidation:
    """Requests are checked before any write."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "resource_type, resource_id, message",
        [
            (ResourceType.ORG, "ghost", r"Org\(ghost\) not found."),
            (ResourceType.TEAM, "public:ghost", r"Team\(public:ghost\) not found."),
            (ResourceType.PROJECT, "ghost", r"Project\(ghost\) not found."),
            (ResourceType.TOPIC, "default:ghost", r"Topic\(default:ghost\) not found."),
            (ResourceType.ROOT, "public", r"Root\(public\) not found."),
        ],
    )
    async def test_missing_resource(self, service, tenancy, resource_type, resource_id, message):
        with pytest.raises(ResourceNotFoundError, match=message):
            await service.set_iam_policy(
                resource_type, resource_id, IamPolicyRequest("alice", {"org.admin"})
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resource_id", ["public", ":team_rocket", "public:"])
    async def test_malformed_qualified_id(self, service, tenancy, resource_id):
        with pytest.raises(InvalidResourceError, match="Invalid TEAM resource id"):
            await service.set_iam_policy(
                ResourceType.TEAM, resource_id, IamPolicyRequest("alice", {"team.admin"})
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("resource_type", [ResourceType.SUBSCRIPTION, ResourceType.QUEUE])
    async def test_unsupported_kind(self, service, tenancy, resource_type):
        with pytest.raises(InvalidResourceError, match="not supported"):
            await service.set_iam_policy(
                resource_type, "default:sub001", IamPolicyRequest("alice", {"topic.read"})
            )

    @pytest.mark.asyncio
    async def test_empty_subject(self, service, tenancy):
        with pytest.raises(InvalidResourceError, match="Subject must not be empty"):
            await service.set_iam_policy(
                ResourceType.ORG, "public", IamPolicyRequest("", {"org.admin"})
            )

    @pytest.mark.asyncio
    async def test_unknown_role_with_provider(self, meta_store, authorization_config, tenancy):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        service = RoleBindingService(meta_store, provider=provider)
        with pytest.raises(InvalidResourceError, match="Unknown role"):
            await service.set_iam_policy(
                ResourceType.ORG, "public", IamPolicyRequest("alice", {"ghost.role"})
            )

    def test_max_attempts_positive(self, meta_store):
        with pytest.raises(ValueError):
            RoleBindingService(meta_store, max_attempts=0)


class TestConcurrentModification:
    """Read-modify-write retries on conflicting writers."""

    @pytest.mark.asyncio
    async def test_retries_after_conflicting_update(
        self, service, meta_store, tree, tenancy, monkeypatch
    ):
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        original = meta_store.update_role_binding_node
        calls = []

        async def racing_update(node):
            calls.append(node.version)
            if len(calls) == 1:
                tree.bump_version(ORG_NODE_PATH)
            return await original(node)

        monkeypatch.setattr(meta_store, "update_role_binding_node", racing_update)
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("bob", {"team.admin"})
        )
        assert calls == [0, 1]
        assert node.version == 2

    @pytest.mark.asyncio
    async def test_retries_after_concurrent_create(
        self, service, meta_store, tenancy, monkeypatch
    ):
        original = meta_store.create_role_binding_node

        async def racing_create(node):
            monkeypatch.setattr(meta_store, "create_role_binding_node", original)
            await original(
                RoleBindingNode(
                    "public", resource_type=ResourceType.ORG, role_bindings={"bob": {"r"}}
                )
            )
            return await original(node)

        monkeypatch.setattr(meta_store, "create_role_binding_node", racing_create)
        node = await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        assert set(node.role_bindings) == {"alice", "bob"}
        assert node.version == 1

    @pytest.mark.asyncio
    async def test_revoke_retries_after_conflicting_update(
        self, service, meta_store, tree, tenancy, monkeypatch
    ):
        """A revoke that races a write never deletes the other writer's grant."""
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        original = meta_store.delete_role_binding_node
        calls = []

        async def racing_delete(resource_type, resource_id, version=None):
            calls.append(version)
            if len(calls) == 1:
                tree.bump_version(ORG_NODE_PATH)
            return await original(resource_type, resource_id, version=version)

        monkeypatch.setattr(meta_store, "delete_role_binding_node", racing_delete)
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", set())
        )
        assert calls == [0, 1]
        assert not await meta_store.role_binding_node_exists(ResourceType.ORG, "public")

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(
        self, meta_store, tree, tenancy, monkeypatch
    ):
        service = RoleBindingService(meta_store)
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        original = meta_store.update_role_binding_node
        calls = []

        async def always_racing(node):
            calls.append(node.version)
            tree.bump_version(ORG_NODE_PATH)
            return await original(node)

        monkeypatch.setattr(meta_store, "update_role_binding_node", always_racing)
        with pytest.raises(
            InvalidOperationError, match=r"Conflicting update, RoleBinding\(ORG/public\)"
        ):
            await service.set_iam_policy(
                ResourceType.ORG, "public", IamPolicyRequest("bob", {"team.admin"})
            )
        assert len(calls) == DEFAULT_MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_store_failure_not_retried(self, service, meta_store, tenancy, monkeypatch):
        calls = []

        async def failing_get(resource_type, resource_id):
            calls.append(resource_id)
            raise MetaStoreError("store down")

        monkeypatch.setattr(meta_store, "get_role_binding_node", failing_get)
        with pytest.raises(MetaStoreError, match="store down"):
            await service.set_iam_policy(
                ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
            )
        assert calls == ["public"]


class TestPolicyQueries:
    """get, delete and list of IAM policies."""

    @pytest.mark.asyncio
    async def test_get_missing(self, service, tenancy):
        with pytest.raises(ResourceNotFoundError):
            await service.get_iam_policy(ResourceType.ORG, "public")

    @pytest.mark.asyncio
    async def test_delete_and_list(self, service, tenancy):
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        await service.set_iam_policy(
            ResourceType.PROJECT, "default", IamPolicyRequest("bob", {"project.read"})
        )
        assert len(await service.list_role_bindings()) == 2

        await service.delete_iam_policy(ResourceType.ORG, "public")
        remaining = await service.list_role_bindings()
        assert [(n.resource_type, n.resource_id) for n in remaining] == [
            (ResourceType.PROJECT, "default")
        ]
        with pytest.raises(ResourceNotFoundError):
            await service.delete_iam_policy(ResourceType.ORG, "public")


class TestProviderRefresh:
    """Successful changes refresh the authorization snapshot."""

    @pytest.fixture
    def provider(self, authorization_config):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        return provider

    @pytest.mark.asyncio
    async def test_grant_and_revoke_visible(self, meta_store, provider, tenancy):
        service = RoleBindingService(meta_store, provider=provider)
        path = "public/team_rocket/default/topic001"
        assert not provider.is_authorized("alice", ResourceAction.TOPIC_GET, path)

        await service.set_iam_policy(
            ResourceType.PROJECT, "default", IamPolicyRequest("alice", {"project.read"})
        )
        assert provider.is_authorized("alice", ResourceAction.TOPIC_GET, path)

        await service.set_iam_policy(
            ResourceType.PROJECT, "default", IamPolicyRequest("alice", set())
        )
        assert not provider.is_authorized("alice", ResourceAction.TOPIC_GET, path)

    @pytest.mark.asyncio
    async def test_delete_policy_visible(self, meta_store, provider, tenancy):
        service = RoleBindingService(meta_store, provider=provider)
        await service.set_iam_policy(
            ResourceType.ORG, "public", IamPolicyRequest("alice", {"org.admin"})
        )
        assert provider.is_authorized("alice", ResourceAction.ORG_GET, "public")
        await service.delete_iam_policy(ResourceType.ORG, "public")
        assert not provider.is_authorized("alice", ResourceAction.ORG_GET, "public")
