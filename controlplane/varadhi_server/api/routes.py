"""
Admin API routes for the Varadhi control plane.

Thin glue over the owning services: each handler authorizes the caller on
the resource path it touches, then delegates. Domain errors propagate to
the exception handlers registered in app.py.

Resource paths used for authorization:

    org      {org}
    team     {org}/{team}
    project  {org}/{team}/{project}
    topic    {org}/{team}/{project}/{topic}
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from ..context import ServerContext
from ..entities import (
    CapacityPolicy,
    IamPolicyRequest,
    Org,
    Project,
    ResourceAction,
    ResourcePath,
    ResourceType,
    RoleBindingNode,
    Team,
    TopicResource,
    VaradhiTopic,
    VersionedEntity,
    leaf_resource_id,
    team_resource_id,
)
from ..errors import ResourceNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Varadhi Admin"])


# --- Request Models ---


class OrgCreateRequest(BaseModel):
    """Request to create an org."""

    name: str = Field(..., description="Org name")


class TeamCreateRequest(BaseModel):
    """Request to create a team in the path's org."""

    name: str = Field(..., description="Team name")


class TeamUpdateRequest(BaseModel):
    """Request to rewrite a team at the version last read."""

    version: int = Field(..., description="Version last read by the caller")


class ProjectCreateRequest(BaseModel):
    """Request to create a project."""

    name: str = Field(..., description="Project name (globally unique)")
    org: str = Field(..., description="Owning org")
    team: str = Field(..., description="Owning team")
    description: str = Field("", description="Free-form description")


class ProjectUpdateRequest(BaseModel):
    """Request to move a project to another team or change its description."""

    org: str = Field(..., description="Owning org (cannot change)")
    team: str = Field(..., description="Owning team")
    description: str = Field("", description="Free-form description")
    version: int = Field(..., description="Version last read by the caller")


class CapacityPolicyModel(BaseModel):
    max_qps: int = Field(50, ge=1)
    max_throughput_kbps: int = Field(100, ge=1)
    read_fan_out: int = Field(2, ge=1)


class TopicCreateRequest(BaseModel):
    """Request to create a topic in the path's project."""

    name: str = Field(..., description="Topic name")
    grouped: bool = Field(False, description="Ordering-sensitive topic")
    capacity_policy: CapacityPolicyModel | None = Field(None, description="Requested capacity")


class IamPolicyModel(BaseModel):
    """Set one subject's roles on a resource; empty roles revoke."""

    subject: str = Field(..., description="User identifier")
    roles: list[str] = Field(default_factory=list, description="Role ids to grant")


# --- Dependencies ---


def get_context(request: Request) -> ServerContext:
    """Get the server context from app state."""
    return request.app.state.context


def get_subject(request: Request) -> str | None:
    """Get the calling subject from the configured user header."""
    return request.headers.get(request.app.state.settings.user_header) or None


def authorize(
    context: ServerContext,
    subject: str | None,
    action: ResourceAction,
    resource: str,
) -> None:
    """Reject the request unless subject may perform action on resource.

    Raises:
        HTTPException: 401 without a subject, 403 when denied
    """
    if not context.authorization_enabled:
        return
    if not subject:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    if context.is_super_user(subject):
        return
    if not context.authorization_provider.is_authorized(subject, action, resource):
        raise _denied(subject, action, resource)


def _denied(subject: str, action: ResourceAction, resource: str) -> HTTPException:
    logger.info(
        f"Denied {subject} {action.name} on {resource or '<root>'}",
        extra={"subject": subject, "action": action.name, "resource": resource},
    )
    return HTTPException(
        status_code=403,
        detail=f"Subject({subject}) is not authorized to perform {action.name}.",
    )


def _entity_view(entity: VersionedEntity) -> dict[str, Any]:
    return {**entity.to_dict(), "version": entity.version}


def _topic_view(topic: VaradhiTopic) -> dict[str, Any]:
    return {
        "name": topic.name,
        "project": topic.project,
        "grouped": topic.grouped,
        "capacity_policy": topic.capacity_policy.to_dict() if topic.capacity_policy else None,
        "internal_topics": {
            region: {
                "name": internal.name,
                "region": internal.region,
                "state": internal.state.value,
                "storage_topic": internal.storage_topic.name,
            }
            for region, internal in topic.internal_topics.items()
        },
    }


def _policy_view(node: RoleBindingNode) -> dict[str, Any]:
    return {
        "resource_type": node.resource_type.name,
        "resource_id": node.resource_id,
        "role_bindings": {
            subject: sorted(roles) for subject, roles in sorted(node.role_bindings.items())
        },
        "version": node.version,
    }


async def _authorize_project(
    context: ServerContext,
    subject: str | None,
    action: ResourceAction,
    project_name: str,
    topic: str | None = None,
) -> Project:
    """Authorize on a project, or a topic in it, and return the project.

    Callers who may not act on the project learn nothing about whether it
    exists: a missing project is 404 only when authorization is off or the
    caller is a super user.
    """
    if context.authorization_enabled and not subject:
        raise HTTPException(status_code=401, detail="Missing user identity.")
    try:
        project = await context.project_service.get_project(project_name)
    except ResourceNotFoundError:
        if context.authorization_enabled and not context.is_super_user(subject):
            raise _denied(subject, action, project_name) from None
        raise
    segments = [project.org, project.team, project.name]
    if topic is not None:
        segments.append(topic)
    authorize(context, subject, action, str(ResourcePath.of(*segments)))
    return project


# --- Org Routes ---


@router.get("/orgs")
async def list_orgs(
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> list[dict[str, Any]]:
    authorize(context, subject, ResourceAction.ORG_LIST, "")
    return [_entity_view(org) for org in await context.org_service.get_orgs()]


@router.post("/orgs")
async def create_org(
    body: OrgCreateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.ORG_CREATE, body.name)
    return _entity_view(await context.org_service.create_org(Org(body.name)))


@router.get("/orgs/{org}")
async def get_org(
    org: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.ORG_GET, org)
    return _entity_view(await context.org_service.get_org(org))


@router.delete("/orgs/{org}", status_code=204)
async def delete_org(
    org: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    authorize(context, subject, ResourceAction.ORG_DELETE, org)
    await context.org_service.delete_org(org)
    return Response(status_code=204)


# --- Team Routes ---


@router.get("/orgs/{org}/teams")
async def list_teams(
    org: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> list[dict[str, Any]]:
    authorize(context, subject, ResourceAction.TEAM_LIST, org)
    return [_entity_view(team) for team in await context.team_service.get_teams(org)]


@router.post("/orgs/{org}/teams")
async def create_team(
    org: str,
    body: TeamCreateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.TEAM_CREATE, str(ResourcePath.of(org, body.name)))
    return _entity_view(await context.team_service.create_team(Team(body.name, org=org)))


@router.get("/orgs/{org}/teams/{team}")
async def get_team(
    org: str,
    team: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.TEAM_GET, str(ResourcePath.of(org, team)))
    return _entity_view(await context.team_service.get_team(team, org))


@router.put("/orgs/{org}/teams/{team}")
async def update_team(
    org: str,
    team: str,
    body: TeamUpdateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.TEAM_UPDATE, str(ResourcePath.of(org, team)))
    updated = Team(team, org=org, version=body.version)
    return _entity_view(await context.team_service.update_team(updated))


@router.delete("/orgs/{org}/teams/{team}", status_code=204)
async def delete_team(
    org: str,
    team: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    authorize(context, subject, ResourceAction.TEAM_DELETE, str(ResourcePath.of(org, team)))
    await context.team_service.delete_team(team, org)
    return Response(status_code=204)


@router.get("/orgs/{org}/teams/{team}/projects")
async def list_projects(
    org: str,
    team: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> list[dict[str, Any]]:
    authorize(context, subject, ResourceAction.PROJECT_LIST, str(ResourcePath.of(org, team)))
    projects = await context.project_service.get_projects(team, org)
    return [_entity_view(project) for project in projects]


# --- Project Routes ---


@router.post("/projects")
async def create_project(
    body: ProjectCreateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(
        context,
        subject,
        ResourceAction.PROJECT_CREATE,
        str(ResourcePath.of(body.org, body.team, body.name)),
    )
    project = Project(body.name, org=body.org, team=body.team, description=body.description)
    return _entity_view(await context.project_service.create_project(project))


@router.get("/projects/{project}")
async def get_project(
    project: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    existing = await _authorize_project(context, subject, ResourceAction.PROJECT_GET, project)
    return _entity_view(existing)


@router.put("/projects/{project}")
async def update_project(
    project: str,
    body: ProjectUpdateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.PROJECT_UPDATE, project)
    updated = Project(
        project,
        org=body.org,
        team=body.team,
        description=body.description,
        version=body.version,
    )
    return _entity_view(await context.project_service.update_project(updated))


@router.delete("/projects/{project}", status_code=204)
async def delete_project(
    project: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    await _authorize_project(context, subject, ResourceAction.PROJECT_DELETE, project)
    await context.project_service.delete_project(project)
    return Response(status_code=204)


# --- Topic Routes ---


@router.get("/projects/{project}/topics")
async def list_topics(
    project: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> list[dict[str, Any]]:
    await _authorize_project(context, subject, ResourceAction.TOPIC_LIST, project)
    return [_entity_view(topic) for topic in await context.topic_service.get_topics(project)]


@router.post("/projects/{project}/topics")
async def create_topic(
    project: str,
    body: TopicCreateRequest,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.TOPIC_CREATE, project, body.name)
    capacity = (
        CapacityPolicy(**body.capacity_policy.model_dump()) if body.capacity_policy else None
    )
    topic_resource = TopicResource(
        body.name, project=project, grouped=body.grouped, capacity_policy=capacity
    )
    return _topic_view(await context.topic_service.create_topic(topic_resource))


@router.get("/projects/{project}/topics/{topic}")
async def get_topic(
    project: str,
    topic: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.TOPIC_GET, project, topic)
    return _entity_view(await context.topic_service.get_topic(topic, project))


@router.delete("/projects/{project}/topics/{topic}", status_code=204)
async def delete_topic(
    project: str,
    topic: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    await _authorize_project(context, subject, ResourceAction.TOPIC_DELETE, project, topic)
    await context.topic_service.delete_topic(topic, project)
    return Response(status_code=204)


# --- IAM Policy Routes ---


async def _set_policy(
    context: ServerContext,
    resource_type: ResourceType,
    resource_id: str,
    body: IamPolicyModel,
) -> dict[str, Any]:
    node = await context.role_binding_service.set_iam_policy(
        resource_type, resource_id, IamPolicyRequest(body.subject, set(body.roles))
    )
    return _policy_view(node)


@router.put("/orgs/{org}/policy")
async def set_org_policy(
    org: str,
    body: IamPolicyModel,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.ORG_UPDATE, org)
    return await _set_policy(context, ResourceType.ORG, org, body)


@router.get("/orgs/{org}/policy")
async def get_org_policy(
    org: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.ORG_GET, org)
    return _policy_view(await context.role_binding_service.get_iam_policy(ResourceType.ORG, org))


@router.delete("/orgs/{org}/policy", status_code=204)
async def delete_org_policy(
    org: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    authorize(context, subject, ResourceAction.ORG_UPDATE, org)
    await context.role_binding_service.delete_iam_policy(ResourceType.ORG, org)
    return Response(status_code=204)


@router.put("/orgs/{org}/teams/{team}/policy")
async def set_team_policy(
    org: str,
    team: str,
    body: IamPolicyModel,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.TEAM_UPDATE, str(ResourcePath.of(org, team)))
    return await _set_policy(context, ResourceType.TEAM, team_resource_id(org, team), body)


@router.get("/orgs/{org}/teams/{team}/policy")
async def get_team_policy(
    org: str,
    team: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    authorize(context, subject, ResourceAction.TEAM_GET, str(ResourcePath.of(org, team)))
    node = await context.role_binding_service.get_iam_policy(
        ResourceType.TEAM, team_resource_id(org, team)
    )
    return _policy_view(node)


@router.delete("/orgs/{org}/teams/{team}/policy", status_code=204)
async def delete_team_policy(
    org: str,
    team: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    authorize(context, subject, ResourceAction.TEAM_UPDATE, str(ResourcePath.of(org, team)))
    await context.role_binding_service.delete_iam_policy(
        ResourceType.TEAM, team_resource_id(org, team)
    )
    return Response(status_code=204)


@router.put("/projects/{project}/policy")
async def set_project_policy(
    project: str,
    body: IamPolicyModel,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.PROJECT_UPDATE, project)
    return await _set_policy(context, ResourceType.PROJECT, project, body)


@router.get("/projects/{project}/policy")
async def get_project_policy(
    project: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.PROJECT_GET, project)
    node = await context.role_binding_service.get_iam_policy(ResourceType.PROJECT, project)
    return _policy_view(node)


@router.delete("/projects/{project}/policy", status_code=204)
async def delete_project_policy(
    project: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    await _authorize_project(context, subject, ResourceAction.PROJECT_UPDATE, project)
    await context.role_binding_service.delete_iam_policy(ResourceType.PROJECT, project)
    return Response(status_code=204)


@router.put("/projects/{project}/topics/{topic}/policy")
async def set_topic_policy(
    project: str,
    topic: str,
    body: IamPolicyModel,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.TOPIC_UPDATE, project, topic)
    return await _set_policy(
        context, ResourceType.TOPIC, leaf_resource_id(project, topic), body
    )


@router.get("/projects/{project}/topics/{topic}/policy")
async def get_topic_policy(
    project: str,
    topic: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> dict[str, Any]:
    await _authorize_project(context, subject, ResourceAction.TOPIC_GET, project, topic)
    node = await context.role_binding_service.get_iam_policy(
        ResourceType.TOPIC, leaf_resource_id(project, topic)
    )
    return _policy_view(node)


@router.delete("/projects/{project}/topics/{topic}/policy", status_code=204)
async def delete_topic_policy(
    project: str,
    topic: str,
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> Response:
    await _authorize_project(context, subject, ResourceAction.TOPIC_UPDATE, project, topic)
    await context.role_binding_service.delete_iam_policy(
        ResourceType.TOPIC, leaf_resource_id(project, topic)
    )
    return Response(status_code=204)


# --- Debug Routes ---


@router.get("/authz/debug")
async def list_role_bindings(
    context: ServerContext = Depends(get_context),
    subject: str | None = Depends(get_subject),
) -> list[dict[str, Any]]:
    """All persisted role binding nodes (super users only when authz is on)."""
    if context.authorization_enabled:
        if not subject:
            raise HTTPException(status_code=401, detail="Missing user identity.")
        if not context.is_super_user(subject):
            raise HTTPException(status_code=403, detail="Only super users may list bindings.")
    return [_policy_view(node) for node in await context.role_binding_service.list_role_bindings()]


# --- Health Routes ---


@router.get("/health-check")
async def health_check(context: ServerContext = Depends(get_context)) -> str:
    """Load balancer health check; 503 once the node is taken out of rotation."""
    if not context.in_rotation:
        raise HTTPException(status_code=503, detail="not_ok: under orr")
    return "iam_ok"
