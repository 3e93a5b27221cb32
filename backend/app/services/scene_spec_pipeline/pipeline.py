"""
Scene Spec Pipeline
===================

The orchestrator that coordinates the stages turning site notes into a
validated Scene Specification.

Pipeline Stages:
----------------
1. INTAKE: Extract grounded Field Records from the notes (one model call)
2. FOLLOW-UP RESOLUTION: Decide which clarification questions to ask (no model call)
3. STAGE 1: Compile the Structural Abstraction (one model call)
4. STAGE 2: Compile the Full Specification on top of Stage 1 (one model call)

Design Principles:
------------------
- The model is an untrusted text source: every output is parsed and validated
- Stage 1 is the immutable ground truth for Stage 2 (verified, not assumed)
- The business value is supplied by the caller and passed through unchanged
- No retries, no repair, no partial results
- Each stage is independently invocable; callers own the state between them
- Every result carries an audit record (input hash, timing, tokens, model)

The pipeline holds no request-scoped mutable state, so one instance may serve
concurrent requests.
"""

import hashlib
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .errors import InputValidationError, PipelineError
from .field_extractor import FieldExtractor
from .field_extractor import STAGE as INTAKE_STAGE
from .followup_resolver import FollowupItem, FollowupResolver
from .llm_client import LLMClient, LLMCompletion
from .schemas import (
    BusinessContext,
    ExtractedFields,
    FullSpecification,
    IntakeExtraction,
    StructuralAbstraction,
)
from .stage1_compiler import STAGE as STAGE1
from .stage1_compiler import Stage1Compiler
from .stage2_compiler import STAGE as STAGE2
from .stage2_compiler import Stage2Compiler
from .validation import coerce_input, dump_document
from .vocabulary import IntakeField

logger = logging.getLogger(__name__)

INPUT_HASH_CHARS = 16


@dataclass
class RunMetadata:
    """Audit record for one pipeline invocation."""
    input_hash: str
    processing_time_ms: int = 0
    tokens_used: int = 0
    model: Optional[str] = None
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'input_hash': self.input_hash,
            'processing_time_ms': self.processing_time_ms,
            'tokens_used': self.tokens_used,
            'model': self.model
        }


@dataclass
class IntakeResult:
    """Intake extraction plus the resolved Follow-up Set."""
    extraction: IntakeExtraction
    needed_fields: List[IntakeField]
    followups: List[FollowupItem]
    metadata: RunMetadata
    
    @property
    def needs_followup(self) -> List[str]:
        """Every under-grounded field, including those beyond the follow-up cap."""
        return [f.value for f in self.needed_fields]
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'extracted': dump_document(self.extraction.extracted),
            'needs_followup': self.needs_followup,
            'followups': [f.to_dict() for f in self.followups]
        }


@dataclass
class Stage1Result:
    """Validated Structural Abstraction."""
    stage1: StructuralAbstraction
    metadata: RunMetadata
    
    def to_dict(self) -> Dict[str, Any]:
        return dump_document(self.stage1)


@dataclass
class Stage2Result:
    """Validated, immutability-checked Full Specification."""
    scene_spec: FullSpecification
    metadata: RunMetadata
    
    def to_dict(self) -> Dict[str, Any]:
        return dump_document(self.scene_spec)


@dataclass
class CompileResult:
    """Both compile stages run back to back."""
    stage1: StructuralAbstraction
    scene_spec: FullSpecification
    metadata: RunMetadata
    stage_metadata: Dict[str, RunMetadata] = field(default_factory=dict)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'stage1': dump_document(self.stage1),
            'scene_spec': dump_document(self.scene_spec)
        }


def compute_input_hash(inputs: Mapping[str, Any]) -> str:
    """Stable short hash of the canonical JSON form of the inputs."""
    canonical = json.dumps(inputs, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()[:INPUT_HASH_CHARS]


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


class SceneSpecPipeline:
    """
    Scene specification compiler pipeline.
    
    Usage:
        pipeline = SceneSpecPipeline()
        intake = pipeline.run_intake(notes)
        # ... collect answers to intake.followups ...
        result = pipeline.compile(notes, intake.extraction.extracted, answers, {"priority_customer_business_value": 4})
        print(result.to_dict()['scene_spec'])
    """
    
    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        extractor: Optional[FieldExtractor] = None,
        resolver: Optional[FollowupResolver] = None,
        stage1_compiler: Optional[Stage1Compiler] = None,
        stage2_compiler: Optional[Stage2Compiler] = None
    ):
        """
        Initialize the pipeline.
        
        Args:
            llm_client: Shared model client (a default LLMClient if not provided)
            extractor: Field extractor (built on llm_client if not provided)
            resolver: Follow-up resolver
            stage1_compiler: Stage-1 compiler (built on llm_client if not provided)
            stage2_compiler: Stage-2 compiler (built on llm_client if not provided)
        """
        self.llm_client = llm_client or LLMClient()
        self.extractor = extractor or FieldExtractor(llm_client=self.llm_client)
        self.resolver = resolver or FollowupResolver()
        self.stage1_compiler = stage1_compiler or Stage1Compiler(llm_client=self.llm_client)
        self.stage2_compiler = stage2_compiler or Stage2Compiler(llm_client=self.llm_client)
        
        logger.info("SceneSpecPipeline initialized")
    
    def run_intake(self, notes: str) -> IntakeResult:
        """
        Extract Field Records from notes and resolve the Follow-up Set.
        
        Raises:
            InputValidationError: notes missing or blank
            ExternalCallFailure, MalformedOutput, SchemaViolation: from extraction
        """
        start_time = time.time()
        notes = self._check_notes(notes, INTAKE_STAGE)
        input_hash = compute_input_hash({'notes': notes})
        
        extraction, completion = self._run_stage(
            INTAKE_STAGE, input_hash, lambda: self.extractor.run(notes)
        )
        needed = self.resolver.needed_fields(extraction.extracted)
        followups = self.resolver.resolve(extraction.extracted, extraction.followups)
        
        metadata = self._metadata(input_hash, start_time, [completion])
        logger.info(
            f"[{input_hash}] Intake complete: {len(needed)} field(s) needed, {len(followups)} followup(s), "
            f"{metadata.processing_time_ms}ms"
        )
        return IntakeResult(
            extraction=extraction,
            needed_fields=needed,
            followups=followups,
            metadata=metadata
        )
    
    def compile_stage1(
        self,
        notes: str,
        intake_extracted: Any,
        intake_followups: Optional[Mapping[str, str]] = None
    ) -> Stage1Result:
        """
        Compile the Structural Abstraction.
        
        Args:
            notes: Raw site notes
            intake_extracted: ExtractedFields or its JSON form
            intake_followups: field name -> answer (ground truth over intake)
        
        Raises:
            InputValidationError, ExternalCallFailure, MalformedOutput, SchemaViolation
        """
        start_time = time.time()
        notes = self._check_notes(notes, STAGE1)
        extracted = coerce_input(ExtractedFields, intake_extracted, "intake_extracted", STAGE1)
        answers = self._check_answers(intake_followups, STAGE1)
        input_hash = compute_input_hash({
            'notes': notes,
            'intake_extracted': dump_document(extracted),
            'intake_followups': answers
        })
        
        stage1, completion = self._run_stage(
            STAGE1, input_hash, lambda: self.stage1_compiler.run(notes, extracted, answers)
        )
        
        metadata = self._metadata(input_hash, start_time, [completion])
        logger.info(f"[{input_hash}] Stage 1 complete in {metadata.processing_time_ms}ms")
        return Stage1Result(stage1=stage1, metadata=metadata)
    
    def compile_stage2(
        self,
        notes: str,
        stage1_output: Any,
        business_context: Any
    ) -> Stage2Result:
        """
        Compile the Full Specification from a validated Stage-1 document.
        
        Args:
            notes: Raw site notes
            stage1_output: StructuralAbstraction or its JSON form
            business_context: BusinessContext or {"priority_customer_business_value": 1-5}
        
        Raises:
            InputValidationError, ExternalCallFailure, MalformedOutput,
            SchemaViolation, ImmutabilityViolation
        """
        start_time = time.time()
        notes = self._check_notes(notes, STAGE2)
        stage1 = coerce_input(StructuralAbstraction, stage1_output, "stage1_output", STAGE2)
        context = coerce_input(BusinessContext, business_context, "business_context", STAGE2)
        input_hash = compute_input_hash({
            'notes': notes,
            'stage1_output': dump_document(stage1),
            'business_context': dump_document(context)
        })
        
        scene_spec, completion = self._run_stage(
            STAGE2, input_hash, lambda: self.stage2_compiler.run(notes, stage1, context)
        )
        
        metadata = self._metadata(input_hash, start_time, [completion])
        logger.info(f"[{input_hash}] Stage 2 complete in {metadata.processing_time_ms}ms")
        return Stage2Result(scene_spec=scene_spec, metadata=metadata)
    
    def compile(
        self,
        notes: str,
        intake_extracted: Any,
        intake_followups: Optional[Mapping[str, str]],
        business_context: Any
    ) -> CompileResult:
        """
        Run Stage 1 then Stage 2. Stage 2 is never attempted if Stage 1 fails.
        
        All inputs are checked before the first model call.
        """
        start_time = time.time()
        notes = self._check_notes(notes, STAGE1)
        extracted = coerce_input(ExtractedFields, intake_extracted, "intake_extracted", STAGE1)
        answers = self._check_answers(intake_followups, STAGE1)
        context = coerce_input(BusinessContext, business_context, "business_context", STAGE2)
        input_hash = compute_input_hash({
            'notes': notes,
            'intake_extracted': dump_document(extracted),
            'intake_followups': answers,
            'business_context': dump_document(context)
        })
        
        stage1_result = self.compile_stage1(notes, extracted, answers)
        stage2_result = self.compile_stage2(notes, stage1_result.stage1, context)
        
        metadata = RunMetadata(
            input_hash=input_hash,
            processing_time_ms=_elapsed_ms(start_time),
            tokens_used=stage1_result.metadata.tokens_used + stage2_result.metadata.tokens_used,
            model=stage2_result.metadata.model or stage1_result.metadata.model
        )
        return CompileResult(
            stage1=stage1_result.stage1,
            scene_spec=stage2_result.scene_spec,
            metadata=metadata,
            stage_metadata={STAGE1: stage1_result.metadata, STAGE2: stage2_result.metadata}
        )
    
    def get_status(self) -> Dict[str, Any]:
        """Get component readiness for health checks."""
        return {
            'llm_available': self.llm_client.is_available,
            'model': getattr(self.llm_client, 'model_name', None),
            'extraction_max_tokens': self.extractor.max_tokens,
            'compile_max_tokens': self.stage1_compiler.max_tokens
        }
    
    def _run_stage(self, stage: str, input_hash: str, call):
        try:
            return call()
        except PipelineError as e:
            logger.error(f"[{input_hash}] {stage} failed with {e.error_type}: {e.message}")
            raise
    
    @staticmethod
    def _metadata(input_hash: str, start_time: float, completions: List[LLMCompletion]) -> RunMetadata:
        return RunMetadata(
            input_hash=input_hash,
            processing_time_ms=_elapsed_ms(start_time),
            tokens_used=sum(c.tokens_used for c in completions),
            model=completions[-1].model if completions else None
        )
    
    @staticmethod
    def _check_notes(notes: Any, stage: str) -> str:
        if not isinstance(notes, str) or not notes.strip():
            raise InputValidationError(
                "notes must be a non-empty string",
                stage=stage,
                violations=[{'path': "notes", 'message': "missing or blank"}]
            )
        return notes
    
    @staticmethod
    def _check_answers(answers: Any, stage: str) -> Dict[str, str]:
        """Follow-up answers must map field names to answer strings. None means no answers."""
        if answers is None:
            return {}
        if not isinstance(answers, Mapping):
            raise InputValidationError(
                "intake_followups must be an object mapping field names to answers",
                stage=stage,
                violations=[{
                    'path': "intake_followups",
                    'message': f"expected an object, got {type(answers).__name__}"
                }]
            )
        violations = [
            {'path': f"intake_followups.{key}", 'message': "keys and answers must be strings"}
            for key, value in answers.items()
            if not isinstance(key, str) or not isinstance(value, str)
        ]
        if violations:
            raise InputValidationError(
                "intake_followups contains non-string entries",
                stage=stage,
                violations=violations
            )
        return dict(answers)
