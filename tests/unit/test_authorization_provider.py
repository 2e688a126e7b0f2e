"""
Unit tests for DefaultAuthorizationProvider.

Tests cover:
- Candidate resolution order
- The org/team/project/topic grant scenarios
- Root grants, monotonicity and empty-id safety
- Snapshot refresh and one-time init
"""

import pytest

from controlplane.varadhi_server.auth import (
    AuthorizationConfiguration,
    DefaultAuthorizationProvider,
    parse_authorization_config,
)
from controlplane.varadhi_server.entities import (
    ROOT_RESOURCE_ID,
    ResourceAction,
    ResourceType,
    RoleBindingNode,
)

TOPIC_PATH = "public/team_rocket/default/topic001"
PROJECT_PATH = "public/team_rocket/default"


def _node(resource_type, resource_id, **bindings):
    return RoleBindingNode(
        resource_id,
        resource_type=resource_type,
        role_bindings={subject: set(roles) for subject, roles in bindings.items()},
    )


SCENARIO_NODES = [
    _node(ResourceType.ORG, "public", abc=["team.admin"], xyz=["org.admin"]),
    _node(ResourceType.TEAM, "public:team_rocket", team_user1=["team.admin"]),
    _node(ResourceType.TEAM, "public:team_ash", brock=["team.admin"]),
    _node(
        ResourceType.PROJECT,
        "default",
        proj_user1=["project.read"],
        proj_user2=["topic.read"],
    ),
    _node(ResourceType.TOPIC, "default:topic001", proj_user3=["topic.read"]),
]


class TestResolveOrderedFromLeaf:
    """Tests for candidate resolution."""

    @pytest.fixture
    def provider(self):
        return DefaultAuthorizationProvider()

    def test_leaf_action_on_full_path(self, provider):
        """Leaf actions start at the leaf and end at the root."""
        assert provider.resolve_ordered_from_leaf(ResourceAction.TOPIC_GET, TOPIC_PATH) == [
            (ResourceType.TOPIC, "default:topic001"),
            (ResourceType.PROJECT, "default"),
            (ResourceType.TEAM, "public:team_rocket"),
            (ResourceType.ORG, "public"),
            (ResourceType.ROOT, ROOT_RESOURCE_ID),
        ]

    def test_non_leaf_action_skips_leaf(self, provider):
        candidates = provider.resolve_ordered_from_leaf(ResourceAction.PROJECT_GET, TOPIC_PATH)
        assert [t for t, _ in candidates] == [
            ResourceType.PROJECT,
            ResourceType.TEAM,
            ResourceType.ORG,
            ResourceType.ROOT,
        ]

    def test_subscription_action_uses_subscription_kind(self, provider):
        candidates = provider.resolve_ordered_from_leaf(
            ResourceAction.SUBSCRIPTION_SEEK, "public/team_rocket/default/sub001"
        )
        assert candidates[0] == (ResourceType.SUBSCRIPTION, "default:sub001")

    def test_short_path_degrades_to_empty_ids(self, provider):
        candidates = provider.resolve_ordered_from_leaf(ResourceAction.TOPIC_GET, "public")
        assert candidates == [
            (ResourceType.TOPIC, ""),
            (ResourceType.PROJECT, ""),
            (ResourceType.TEAM, ""),
            (ResourceType.ORG, "public"),
            (ResourceType.ROOT, ROOT_RESOURCE_ID),
        ]

    def test_non_string_resource(self, provider):
        """Malformed input never raises."""
        candidates = provider.resolve_ordered_from_leaf(ResourceAction.ORG_GET, None)
        assert candidates[-2:] == [(ResourceType.ORG, ""), (ResourceType.ROOT, ROOT_RESOURCE_ID)]


class TestIsAuthorizedScenarios:
    """Grant scenarios over a bootstrapped tenancy."""

    @pytest.fixture
    def provider(self, authorization_config):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        provider.refresh_role_bindings(SCENARIO_NODES)
        return provider

    @pytest.mark.parametrize(
        "subject, action, resource, expected",
        [
            ("abc", ResourceAction.ORG_CREATE, "public", False),
            ("xyz", ResourceAction.ORG_CREATE, "public", True),
            ("xyz", ResourceAction.ORG_CREATE, "", False),
            ("proj_user3", ResourceAction.TOPIC_GET, TOPIC_PATH, True),
            ("proj_user3", ResourceAction.PROJECT_GET, TOPIC_PATH, False),
            ("proj_user2", ResourceAction.TOPIC_GET, TOPIC_PATH, True),
            ("abc", ResourceAction.TOPIC_GET, TOPIC_PATH, True),
            ("team_user1", ResourceAction.TOPIC_GET, TOPIC_PATH, True),
            ("brock", ResourceAction.TOPIC_GET, TOPIC_PATH, False),
            ("proj_user2", ResourceAction.PROJECT_GET, PROJECT_PATH, False),
            ("proj_user2", ResourceAction.TOPIC_GET, PROJECT_PATH, True),
            ("proj_user1", ResourceAction.PROJECT_GET, PROJECT_PATH, True),
        ],
    )
    def test_scenario(self, provider, subject, action, resource, expected):
        assert provider.is_authorized(subject, action, resource) is expected

    def test_unknown_subject(self, provider):
        assert not provider.is_authorized("nobody", ResourceAction.TOPIC_GET, TOPIC_PATH)

    @pytest.mark.parametrize("resource", ["", "/", "//", "a//b", None, 42])
    def test_malformed_paths_are_denied(self, provider, resource):
        assert not provider.is_authorized("xyz", ResourceAction.ORG_GET, resource)

    def test_empty_ids_have_no_roles(self, provider):
        assert provider.get_roles_for_subject("xyz", ResourceType.ORG, "") == frozenset()

    def test_grant_does_not_cross_resource_types(self, provider):
        """An org named like a project gives no roles on that project."""
        assert provider.get_roles_for_subject("xyz", ResourceType.ORG, "public") == {"org.admin"}
        assert provider.get_roles_for_subject("xyz", ResourceType.PROJECT, "public") == frozenset()
        assert not provider.is_authorized(
            "xyz", ResourceAction.PROJECT_GET, "default/team_rocket/public"
        )
        assert not provider.is_authorized(
            "xyz", ResourceAction.TOPIC_GET, "default/team_rocket/public/topic001"
        )

    def test_binding_on_empty_id_never_matches(self, authorization_config):
        """Even a binding stored under "" cannot authorize."""
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        provider.refresh_role_bindings([_node(ResourceType.ORG, "", xyz=["org.admin"])])
        assert not provider.is_authorized("xyz", ResourceAction.ORG_GET, "")

    def test_unknown_role_ids_are_ignored(self, authorization_config):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        provider.refresh_role_bindings([_node(ResourceType.ORG, "public", xyz=["ghost"])])
        assert not provider.is_authorized("xyz", ResourceAction.ORG_GET, "public")


class TestRootAndMonotonicity:
    """Root grants and grant monotonicity."""

    @pytest.fixture
    def provider(self, authorization_config):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        return provider

    @pytest.mark.parametrize(
        "action, resource",
        [
            (ResourceAction.ORG_GET, ""),
            (ResourceAction.ORG_DELETE, "anything"),
            (ResourceAction.TEAM_UPDATE, "a/b"),
            (ResourceAction.TOPIC_GET, "a/b/c/d"),
        ],
    )
    def test_root_grant_authorizes_everywhere(self, provider, action, resource):
        """A role bound at ROOT applies to every path."""
        provider.refresh_role_bindings(
            [_node(ResourceType.ROOT, ROOT_RESOURCE_ID, admin=["org.admin"])]
        )
        assert provider.is_authorized("admin", action, resource)

    def test_root_grant_limited_to_role(self, provider):
        provider.refresh_role_bindings(
            [_node(ResourceType.ROOT, ROOT_RESOURCE_ID, reader=["topic.read"])]
        )
        assert not provider.is_authorized("reader", ResourceAction.PROJECT_GET, PROJECT_PATH)

    def test_adding_ancestor_grants_is_monotonic(self, provider):
        """Each added ancestor grant keeps previous answers true."""
        checks = [
            (action, path)
            for action in (ResourceAction.TOPIC_GET, ResourceAction.PROJECT_GET,
                           ResourceAction.TEAM_GET, ResourceAction.ORG_GET)
            for path in (TOPIC_PATH, PROJECT_PATH, "public/team_rocket", "public")
        ]
        grants = [
            _node(ResourceType.TOPIC, "default:topic001", s=["topic.read"]),
            _node(ResourceType.PROJECT, "default", s=["project.read"]),
            _node(ResourceType.TEAM, "public:team_rocket", s=["team.admin"]),
            _node(ResourceType.ORG, "public", s=["org.admin"]),
        ]
        previous = {check: False for check in checks}
        for i in range(1, len(grants) + 1):
            provider.refresh_role_bindings(grants[:i])
            current = {check: provider.is_authorized("s", *check) for check in checks}
            for check, was_true in previous.items():
                if was_true:
                    assert current[check], check
            previous = current
        assert all(previous.values())


class TestProviderLifecycle:
    """Tests for init and binding refresh."""

    def test_init_once(self, authorization_config):
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        assert provider.initialized
        with pytest.raises(RuntimeError, match="already initialized"):
            provider.init(authorization_config)

    def test_uninitialized_denies(self):
        provider = DefaultAuthorizationProvider()
        assert not provider.is_authorized("xyz", ResourceAction.ORG_GET, "public")

    def test_seed_bindings_survive_refresh(self):
        config = parse_authorization_config(
            {
                "roleDefinitions": {"viewer": {"permissions": ["ORG_GET"]}},
                "roleBindings": {"public": {"seed": ["viewer"]}},
            }
        )
        provider = DefaultAuthorizationProvider()
        provider.init(config)
        assert provider.is_authorized("seed", ResourceAction.ORG_GET, "public")

        provider.refresh_role_bindings([_node(ResourceType.ORG, "public", other=["viewer"])])
        assert provider.is_authorized("seed", ResourceAction.ORG_GET, "public")
        assert provider.is_authorized("other", ResourceAction.ORG_GET, "public")

        provider.refresh_role_bindings([])
        assert not provider.is_authorized("other", ResourceAction.ORG_GET, "public")

    def test_snapshot_not_shared_with_nodes(self, authorization_config):
        """Mutating a node after refresh does not leak into the snapshot."""
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        node = _node(ResourceType.ORG, "public", xyz=["org.admin"])
        provider.refresh_role_bindings([node])
        node.set_roles("xyz", set())
        assert provider.is_authorized("xyz", ResourceAction.ORG_GET, "public")

    @pytest.mark.asyncio
    async def test_load_role_bindings_from_store(self, authorization_config, meta_store):
        await meta_store.create_role_binding_node(
            _node(ResourceType.ORG, "public", xyz=["org.admin"])
        )
        provider = DefaultAuthorizationProvider()
        provider.init(authorization_config)
        await provider.load_role_bindings(meta_store)
        assert provider.is_authorized("xyz", ResourceAction.ORG_GET, "public")

    def test_empty_configuration(self):
        provider = DefaultAuthorizationProvider()
        provider.init(AuthorizationConfiguration())
        assert provider.roles == {}
