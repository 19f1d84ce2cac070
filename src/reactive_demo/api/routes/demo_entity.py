"""
Demo entity API routes
"""

import logging
from typing import AsyncGenerator, Awaitable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from reactive_demo.models.demo_entity import CreateEntityRequest, DemoEntity
from reactive_demo.services.demo_entity_repository import DemoEntityRepository
from reactive_demo.utils.errors import MalformedRequestError

router = APIRouter()
logger = logging.getLogger(__name__)


class DemoEntityController:
    """Thin pass-through between HTTP requests and the repository"""

    def __init__(self, repository: DemoEntityRepository):
        self.repository = repository

    def get_entities(self) -> AsyncGenerator[DemoEntity, None]:
        return self.repository.find_all()

    async def create_entity(self, body: Awaitable[bytes]) -> DemoEntity:
        """
        Decode a create request and persist the resulting entity

        Args:
            body: Awaitable producing the raw request body

        Raises:
            MalformedRequestError: body is not a JSON object with a ``data`` field
            PersistenceError: propagated unchanged from the repository
        """
        raw = await body

        try:
            request = CreateEntityRequest.model_validate_json(raw)
        except ValidationError as e:
            details = [
                {
                    "field": " -> ".join(str(loc) for loc in error.get("loc", [])) or "body",
                    "message": error.get("msg", "Invalid value"),
                    "type": error.get("type", "unknown")
                }
                for error in e.errors()
            ]
            raise MalformedRequestError("Request body could not be decoded", details) from e

        return await self.repository.save(request.to_entity())


def get_demo_entity_controller(request: Request) -> DemoEntityController:
    """Controller wired at application startup"""
    return request.app.state.demo_entity_controller


async def _stream_json_array(first: Optional[DemoEntity], rest: AsyncGenerator[DemoEntity, None]) -> AsyncGenerator[str, None]:
    try:
        if first is None:
            yield "[]"
            return

        yield "[" + first.model_dump_json()
        async for entity in rest:
            yield "," + entity.model_dump_json()
        yield "]"
    finally:
        await rest.aclose()


# response_model only documents the schema; the StreamingResponse bypasses it
@router.get("", response_model=list[DemoEntity])
async def get_entities(controller: DemoEntityController = Depends(get_demo_entity_controller)):
    """List every demo entity, streamed as a JSON array"""
    entities = controller.get_entities()

    # Pull the first row before committing to a 200 so store failures
    # still reach the error handlers
    try:
        first = await anext(entities, None)
    except BaseException:
        await entities.aclose()
        raise

    return StreamingResponse(_stream_json_array(first, entities), media_type="application/json")


@router.post("", response_model=DemoEntity)
async def create_entity(
    request: Request,
    controller: DemoEntityController = Depends(get_demo_entity_controller)
):
    """Create a demo entity from {"data": ...}"""
    entity = await controller.create_entity(request.body())
    logger.info(f"Created demo entity id={entity.id}")
    return entity
