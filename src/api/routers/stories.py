"""
Story API Endpoints

Story lifecycle, merge, expert assignment and live-eligibility endpoints.
Every route runs against the tenant that owns the request hostname.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from src.api.deps import (
    RequestContext,
    get_config,
    get_db,
    get_event_broker,
    get_request_context,
    get_tenant,
)
from src.api.schemas.stories import (
    CreateStoryRequest,
    LiveStatusResponse,
    MergeStoriesPayload,
    MergeStoriesRequest,
    SectionsResponse,
    SetStoryModeRequest,
    StoryPayload,
)
from src.story_aggregation.models import (
    CreateStoryInput,
    FindOrCreateStoryInput,
    Story,
    Tenant,
    UpdateStoryInput,
    UpdateStorySettingsInput,
)
from src.story_aggregation.services import (
    StoryLiveSource,
    StoryMergeService,
    StoryService,
)


router = APIRouter(prefix="/api/stories", tags=["stories"])


def get_story_service(
    db=Depends(get_db),
    broker=Depends(get_event_broker),
) -> StoryService:
    """Dependency for StoryService."""
    return StoryService(db, config=get_config(), broker=broker)


def get_merge_service(db=Depends(get_db)) -> StoryMergeService:
    """Dependency for StoryMergeService."""
    return StoryMergeService(db)


def _payload(
    story: Optional[Story],
    story_id: str,
    ctx: RequestContext,
    client_mutation_id: Optional[str],
) -> StoryPayload:
    if not story:
        raise HTTPException(status_code=404, detail=f"Story {story_id} not found")
    return StoryPayload(
        story=story,
        client_mutation_id=client_mutation_id or ctx.trace_id,
    )


@router.get("/find", response_model=Story)
def find_story(
    id: Optional[str] = Query(default=None, description="Story ID"),
    url: Optional[str] = Query(default=None, description="Story URL"),
    tenant: Tenant = Depends(get_tenant),
    service: StoryService = Depends(get_story_service),
):
    """
    Find a story by ID or URL.
    """
    if not id and not url:
        raise HTTPException(status_code=400, detail="id or url is required")
    story = service.find(tenant, story_id=id, url=url)
    if not story:
        raise HTTPException(status_code=404, detail="Story not found")
    return story


@router.get("/sections", response_model=SectionsResponse)
def get_sections(
    tenant: Tenant = Depends(get_tenant),
    service: StoryService = Depends(get_story_service),
):
    """
    List story sections (null when the tenant does not use sections).
    """
    return SectionsResponse(sections=service.retrieve_sections(tenant))


@router.post("/find-or-create", response_model=StoryPayload)
def find_or_create_story(
    story_input: FindOrCreateStoryInput,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    """
    Find a story, creating it on first sight.

    Scraping is queued, so metadata may still be missing in the response.
    """
    story = service.find_or_create(tenant, story_input, ctx.now)
    return _payload(story, story_input.id or story_input.url or "", ctx, client_mutation_id)


@router.post("", response_model=StoryPayload, status_code=201)
def create_story(
    request: CreateStoryRequest,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    """
    Create a story. Without metadata the page is scraped before responding.
    """
    story = service.create(
        tenant,
        request.id,
        request.url,
        CreateStoryInput(mode=request.mode, metadata=request.metadata, closed_at=request.closed_at),
        ctx.now,
    )
    return _payload(story, request.id, ctx, client_mutation_id)


@router.post("/merge", response_model=MergeStoriesPayload)
def merge_stories(
    request: MergeStoriesRequest,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryMergeService = Depends(get_merge_service),
):
    """
    Merge source stories into the destination story.

    The destination's counts become the sum of the sources' counts.
    """
    result = service.merge(tenant, request.destination_id, request.source_ids)
    return MergeStoriesPayload(
        **result.model_dump(),
        client_mutation_id=client_mutation_id or ctx.trace_id,
    )


@router.patch("/{story_id}", response_model=StoryPayload)
def update_story(
    story_id: str,
    updates: UpdateStoryInput,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    """
    Update story fields. Only provided fields will be updated.
    """
    story = service.update(tenant, story_id, updates, ctx.now)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.patch("/{story_id}/settings", response_model=StoryPayload)
def update_story_settings(
    story_id: str,
    updates: UpdateStorySettingsInput,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.update_settings(tenant, story_id, updates, ctx.now)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.put("/{story_id}/mode", response_model=StoryPayload)
def set_story_mode(
    story_id: str,
    request: SetStoryModeRequest,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.update_story_mode(tenant, story_id, request.mode, ctx.now)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.post("/{story_id}/open", response_model=StoryPayload)
def open_story(
    story_id: str,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.open(tenant, story_id, ctx.now)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.post("/{story_id}/close", response_model=StoryPayload)
def close_story(
    story_id: str,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.close(tenant, story_id, ctx.now)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.delete("/{story_id}", response_model=StoryPayload)
def remove_story(
    story_id: str,
    include_comments: bool = Query(default=False, description="Also delete comments and actions"),
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    """
    Remove a story. Refused with 409 when it has comments and
    include_comments is false.
    """
    story = service.remove(tenant, story_id, include_comments=include_comments)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.post("/{story_id}/experts/{user_id}", response_model=StoryPayload)
def add_story_expert(
    story_id: str,
    user_id: str,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.add_expert(tenant, story_id, user_id)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.delete("/{story_id}/experts/{user_id}", response_model=StoryPayload)
def remove_story_expert(
    story_id: str,
    user_id: str,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    client_mutation_id: Optional[str] = Header(default=None),
    service: StoryService = Depends(get_story_service),
):
    story = service.remove_expert(tenant, story_id, user_id)
    return _payload(story, story_id, ctx, client_mutation_id)


@router.get("/{story_id}/live", response_model=LiveStatusResponse)
def get_live_status(
    story_id: str,
    tenant: Tenant = Depends(get_tenant),
    ctx: RequestContext = Depends(get_request_context),
    service: StoryService = Depends(get_story_service),
):
    """
    Whether real-time updates are currently enabled for the story.
    """
    story = service.find(tenant, story_id=story_id)
    if not story:
        raise HTTPException(status_code=404, detail=f"Story {story_id} not found")
    return LiveStatusResponse(
        story_id=story.id,
        enabled=service.is_live_enabled(tenant, StoryLiveSource(story), ctx.now),
    )
