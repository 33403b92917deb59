"""Blueprint endpoints for the FastAPI backend."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..config import get_settings
from ..context import build_business_context, sanitize_input
from ..errors import MissingCredentialsError
from ..pipeline import BlueprintPipeline
from ..schemas import (
    SECTION_ORDER,
    BlueprintResult,
    BusinessProfile,
    ContextResponse,
    GenerateRequest,
    SectionDefinition,
)


router = APIRouter(prefix="/blueprint", tags=["blueprint"])


def get_pipeline() -> BlueprintPipeline:
    """Build a pipeline from environment settings; overridden in tests."""

    try:
        return BlueprintPipeline.from_settings(get_settings())
    except MissingCredentialsError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    """Simple health check endpoint."""

    return {"status": "ok"}


@router.get("/sections", response_model=list[SectionDefinition])
async def list_sections() -> list[SectionDefinition]:
    """Expose section order and labels to the UI."""

    return [SectionDefinition(id=section, label=section.label, order=section.order) for section in SECTION_ORDER]


@router.post("/context", response_model=ContextResponse)
async def build_context(profile: BusinessProfile) -> ContextResponse:
    return ContextResponse(context=build_business_context(profile))


@router.post("/generate", response_model=BlueprintResult)
async def generate_blueprint(
    payload: GenerateRequest,
    pipeline: BlueprintPipeline = Depends(get_pipeline),
) -> BlueprintResult:
    """Run every section and return the blueprint, or the partial output and error."""

    if payload.context and payload.context.strip():
        context = sanitize_input(payload.context, field="context")
    elif payload.profile is not None:
        context = build_business_context(payload.profile)
    else:
        raise HTTPException(status_code=422, detail="Provide either a business context or a profile.")
    return await pipeline.run(context)
