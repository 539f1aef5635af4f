"""CRUD endpoints, generated once per resource type.

For every descriptor in RESOURCE_TYPES:

    POST   /<type>/create        admin   -> 201 resource
    GET    /<type>?page=&limit=  public  -> Page[resource]
    GET    /<type>/{id}          public  -> resource
    PATCH  /<type>/{id}          admin   -> resource
    DELETE /<type>/{id}          admin   -> {"id": ..., "deleted": true}

Domain errors raised by ResourceService propagate to the handlers
registered in main.py.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request

from core.auth import require_admin
from core.database import DbSession
from core.ratelimit import READ_LIMIT, WRITE_LIMIT, limiter
from schemas import DeleteResponse, ErrorResponse, Page, PageMeta
from services.resource_service import ResourceService
from services.resource_types import RESOURCE_TYPES, ResourceType

_ERROR_RESPONSES = {
    401: {"model": ErrorResponse, "description": "Not authenticated"},
    403: {"model": ErrorResponse, "description": "Admin role required"},
}


def build_resource_router(resource_type: ResourceType) -> APIRouter:
    rt = resource_type
    CreateSchema = rt.create_schema
    UpdateSchema = rt.update_schema
    ResponseSchema = rt.response_schema
    PageSchema = Page[ResponseSchema]

    router = APIRouter(prefix=f"/{rt.name}", tags=[rt.name])

    def get_service(db: DbSession) -> ResourceService:
        return ResourceService(db, rt)

    Service = Annotated[ResourceService, Depends(get_service)]
    ResourceId = Annotated[int, Path(ge=1, description=f"{rt.label} id")]

    @router.post(
        "/create",
        response_model=ResponseSchema,
        status_code=201,
        dependencies=[Depends(require_admin)],
        responses={
            **_ERROR_RESPONSES,
            409: {"model": ErrorResponse, "description": "Natural key taken"},
            422: {"model": ErrorResponse, "description": "Invalid payload"},
        },
        summary=f"Create a {rt.label.lower()}",
    )
    @limiter.limit(WRITE_LIMIT)
    async def create(request: Request, payload: CreateSchema, service: Service):
        entity = await service.create(payload)
        return ResponseSchema.model_validate(entity)

    @router.get("", response_model=PageSchema, summary=f"List {rt.name}")
    @limiter.limit(READ_LIMIT)
    async def find_all(
        request: Request,
        service: Service,
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int | None, Query(ge=1)] = None,
    ):
        result = await service.find_all(page=page, limit=limit)
        return PageSchema(
            items=[ResponseSchema.model_validate(item) for item in result.items],
            meta=PageMeta(
                item_count=result.item_count,
                total_items=result.total_items,
                items_per_page=result.items_per_page,
                total_pages=result.total_pages,
                current_page=result.current_page,
            ),
        )

    @router.get(
        "/{resource_id}",
        response_model=ResponseSchema,
        responses={404: {"model": ErrorResponse, "description": "Not found"}},
        summary=f"Get one {rt.label.lower()}",
    )
    @limiter.limit(READ_LIMIT)
    async def find_one(request: Request, resource_id: ResourceId, service: Service):
        entity = await service.find_one(resource_id)
        return ResponseSchema.model_validate(entity)

    @router.patch(
        "/{resource_id}",
        response_model=ResponseSchema,
        dependencies=[Depends(require_admin)],
        responses={
            **_ERROR_RESPONSES,
            404: {"model": ErrorResponse, "description": "Not found"},
            409: {"model": ErrorResponse, "description": "Natural key taken"},
        },
        summary=f"Update a {rt.label.lower()}",
    )
    @limiter.limit(WRITE_LIMIT)
    async def update(
        request: Request,
        resource_id: ResourceId,
        payload: UpdateSchema,
        service: Service,
    ):
        entity = await service.update(resource_id, payload)
        return ResponseSchema.model_validate(entity)

    @router.delete(
        "/{resource_id}",
        response_model=DeleteResponse,
        dependencies=[Depends(require_admin)],
        responses={
            **_ERROR_RESPONSES,
            404: {"model": ErrorResponse, "description": "Not found"},
        },
        summary=f"Delete a {rt.label.lower()}",
    )
    @limiter.limit(WRITE_LIMIT)
    async def remove(request: Request, resource_id: ResourceId, service: Service):
        await service.remove(resource_id)
        return DeleteResponse(id=resource_id)

    return router


resource_routers = [build_resource_router(rt) for rt in RESOURCE_TYPES.values()]
