"""
Scene Spec Compiler API Routes
==============================

REST API endpoints for the scene specification compiler pipeline.

Endpoints:
- POST /api/v1/scene-spec/intake - Extract Field Records and follow-up questions from notes
- POST /api/v1/scene-spec/compile/stage1 - Compile the Structural Abstraction
- POST /api/v1/scene-spec/compile/stage2 - Compile the Full Specification from a Stage-1 document
- POST /api/v1/scene-spec/compile - Run Stage 1 then Stage 2
- GET /api/v1/scene-spec/vocabulary - Get the closed vocabularies
- GET /api/v1/scene-spec/health - Component readiness

Each stage is stateless on the server: the caller carries intermediate
documents from one request to the next.
"""

import logging
from typing import Dict, Any, List, Optional
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from app.models import PipelineResponse, RunMetadataOutput
from app.services.scene_spec_pipeline.errors import InputValidationError, PipelineError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/scene-spec", tags=["Scene Spec Compiler"])


# ============================================================================
# Request/Response Models
# ============================================================================
# Request fields are loosely typed: envelope problems surface as
# InputValidationError (HTTP 400 with violation paths).

class IntakeRequest(BaseModel):
    """Request for the intake step."""
    notes: Any = Field(None, description="Free-text customer site notes")


class Stage1Request(BaseModel):
    """Request for the Stage-1 compile step."""
    notes: Any = None
    intake_extracted: Any = Field(None, description="'extracted' object returned by /intake")
    intake_followups: Any = Field(None, description="field name -> answer")


class Stage2Request(BaseModel):
    """Request for the Stage-2 compile step."""
    notes: Any = None
    stage1_output: Any = Field(None, description="Structural Abstraction returned by /compile/stage1")
    business_context: Any = Field(None, description='{"priority_customer_business_value": 1-5}')


class CompileRequest(BaseModel):
    """Request for running both compile stages."""
    notes: Any = None
    intake_extracted: Any = None
    intake_followups: Any = None
    business_context: Any = None


class FollowupOutput(BaseModel):
    """One clarification question."""
    field_name: str
    question: str
    why_needed: Optional[str] = None
    source: str = Field(..., description="provided | synthesized")


class IntakeResponse(PipelineResponse):
    """Response for the intake endpoint."""
    extracted: Optional[Dict[str, Any]] = None
    needs_followup: List[str] = Field([], description="Every under-grounded field name, before the follow-up cap")
    followups: List[FollowupOutput] = []


class Stage1Response(PipelineResponse):
    """Response for the Stage-1 endpoint."""
    stage1: Optional[Dict[str, Any]] = None


class Stage2Response(PipelineResponse):
    """Response for the Stage-2 endpoint."""
    scene_spec: Optional[Dict[str, Any]] = None


class CompileResponse(PipelineResponse):
    """Response for the combined compile endpoint."""
    stage1: Optional[Dict[str, Any]] = None
    scene_spec: Optional[Dict[str, Any]] = None


class VocabularyResponse(BaseModel):
    """Response containing the closed vocabularies."""
    total_vocabularies: int
    vocabularies: Dict[str, List[str]]


class ComponentHealth(BaseModel):
    """Readiness of the pipeline components."""
    status: str
    llm_available: bool
    model: Optional[str] = None
    extraction_max_tokens: int
    compile_max_tokens: int


# ============================================================================
# Pipeline Instance (Singleton)
# ============================================================================

_pipeline_instance = None


def get_pipeline():
    """Get or create the pipeline instance."""
    global _pipeline_instance
    
    if _pipeline_instance is None:
        from app.services.scene_spec_pipeline import SceneSpecPipeline
        
        _pipeline_instance = SceneSpecPipeline()
        logger.info("Initialized SceneSpecPipeline singleton")
    
    return _pipeline_instance


def _metadata(result) -> RunMetadataOutput:
    return RunMetadataOutput(**result.metadata.to_dict())


def _reject_input(error: InputValidationError):
    logger.warning(f"Rejected request at {error.stage}: {error.message}")
    raise HTTPException(status_code=400, detail=error.to_dict())


def _failure(response_cls, error: Exception):
    """Build a failure envelope; never carries partial results."""
    if isinstance(error, PipelineError):
        logger.error(f"Pipeline error ({error.error_type}) at {error.stage}: {error.message}")
        return response_cls(success=False, **error.to_dict())
    
    logger.error(f"Pipeline error: {error}", exc_info=True)
    return response_cls(success=False, error=str(error), error_type="internal_error")


# ============================================================================
# API Endpoints
# ============================================================================
# Endpoints are sync so blocking model calls run in the threadpool.

@router.post("/intake", response_model=IntakeResponse)
def intake(request: IntakeRequest) -> IntakeResponse:
    """
    Extract grounded Field Records from site notes.
    
    Returns the extracted fields plus at most 5 follow-up questions for
    fields that are missing or below the confidence threshold.
    """
    try:
        result = get_pipeline().run_intake(request.notes)
        payload = result.to_dict()
        
        return IntakeResponse(
            success=True,
            extracted=payload['extracted'],
            needs_followup=payload['needs_followup'],
            followups=[FollowupOutput(**f) for f in payload['followups']],
            metadata=_metadata(result)
        )
        
    except InputValidationError as e:
        _reject_input(e)
    except Exception as e:
        return _failure(IntakeResponse, e)


@router.post("/compile/stage1", response_model=Stage1Response)
def compile_stage1(request: Stage1Request) -> Stage1Response:
    """
    Compile the Structural Abstraction (task / environment / failure modes).
    
    Follow-up answers are ground truth and override intake values on conflict.
    """
    try:
        result = get_pipeline().compile_stage1(
            request.notes,
            request.intake_extracted,
            request.intake_followups
        )
        return Stage1Response(success=True, stage1=result.to_dict(), metadata=_metadata(result))
        
    except InputValidationError as e:
        _reject_input(e)
    except Exception as e:
        return _failure(Stage1Response, e)


@router.post("/compile/stage2", response_model=Stage2Response)
def compile_stage2(request: Stage2Request) -> Stage2Response:
    """
    Compile the Full Specification on top of a Stage-1 document.
    
    The result is rejected if any Stage-1 section or the supplied business
    value was altered.
    """
    try:
        result = get_pipeline().compile_stage2(
            request.notes,
            request.stage1_output,
            request.business_context
        )
        return Stage2Response(success=True, scene_spec=result.to_dict(), metadata=_metadata(result))
        
    except InputValidationError as e:
        _reject_input(e)
    except Exception as e:
        return _failure(Stage2Response, e)


@router.post("/compile", response_model=CompileResponse)
def compile_scene_spec(request: CompileRequest) -> CompileResponse:
    """
    Run Stage 1 then Stage 2 in one request.
    
    Stage 2 is never attempted if Stage 1 fails.
    """
    try:
        result = get_pipeline().compile(
            request.notes,
            request.intake_extracted,
            request.intake_followups,
            request.business_context
        )
        payload = result.to_dict()
        
        return CompileResponse(
            success=True,
            stage1=payload['stage1'],
            scene_spec=payload['scene_spec'],
            metadata=_metadata(result)
        )
        
    except InputValidationError as e:
        _reject_input(e)
    except Exception as e:
        return _failure(CompileResponse, e)


@router.get("/vocabulary", response_model=VocabularyResponse)
async def get_vocabulary(
    name: Optional[str] = Query(None, description="Return a single vocabulary by name")
) -> VocabularyResponse:
    """
    Get the closed vocabularies every categorical field is restricted to.
    """
    from app.services.scene_spec_pipeline.vocabulary import VOCABULARY
    
    if name is not None and VOCABULARY.get(name) is None:
        raise HTTPException(status_code=404, detail=f"Unknown vocabulary: {name}")
    
    vocabularies = VOCABULARY.to_dict([name] if name else None)
    return VocabularyResponse(total_vocabularies=len(vocabularies), vocabularies=vocabularies)


@router.get("/health", response_model=ComponentHealth)
async def pipeline_health() -> ComponentHealth:
    """Check pipeline component readiness."""
    status = get_pipeline().get_status()
    return ComponentHealth(
        status="healthy" if status['llm_available'] else "degraded",
        **status
    )
