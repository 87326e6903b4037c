"""Model catalogue, single-model response and side-by-side comparison routes."""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modelcompare.compare import compare_models
from modelcompare.routes.deps import require_authorization

logger = logging.getLogger(__name__)

router = APIRouter()


class RespondRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: str = Field(min_length=1)
    model_id: str = Field(min_length=1)


class CompareRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: str = Field(min_length=1)
    model_ids: list[str] = Field(min_length=1)


@router.get("")
async def list_models(request: Request):
    """List every configured model, available key or not."""
    registry = request.app.state.registry
    return [m.to_dict() for m in registry.get_all_models()]


@router.post("/respond", dependencies=[Depends(require_authorization)])
async def respond(request: Request, body: RespondRequest):
    registry = request.app.state.registry
    response = await registry.call_model(body.prompt, body.model_id)
    return response.to_dict()


@router.post("/compare", dependencies=[Depends(require_authorization)])
async def compare(request: Request, body: CompareRequest):
    """Fan the prompt out to every selected model; failures stay per-entry."""
    responses = await compare_models(request.app.state.registry, body.prompt, body.model_ids)
    comparison = await request.app.state.storage.create_comparison(body.prompt, body.model_ids, responses)
    succeeded = sum(1 for r in responses.values() if r["status"] == "success")
    logger.info("Comparison %s: %d/%d models succeeded", comparison.id, succeeded, len(responses))
    return {"id": comparison.id, "responses": responses}


@router.get("/comparisons")
async def list_comparisons(request: Request):
    comparisons = await request.app.state.storage.list_comparisons()
    return [c.to_dict() for c in comparisons]
