"""
Scene Spec Compiler Pipeline
============================

Turns unstructured customer site notes about a physical manipulation task
into a validated, schema-conforming Scene Specification through a sequence
of constrained language-model calls.

Pipeline Stages:
1. INTAKE: Field Records (value, confidence, evidence) from the notes
2. FOLLOW-UP RESOLUTION: At most 5 clarification questions
3. STAGE 1: Structural Abstraction (task / environment / failure modes)
4. STAGE 2: Full Specification with Stage 1 as immutable ground truth

Design Principles:
- Model output is untrusted (strict JSON parse + contract validation)
- Closed vocabularies for every categorical field
- Stage-1 immutability verified mechanically, not assumed
- Business value supplied externally and passed through unchanged
- No retries, no repair, no partial results
"""

from .vocabulary import DomainVocabulary, VOCABULARY, IntakeField, EnvironmentType
from .errors import (
    PipelineError,
    ExternalCallFailure,
    MalformedOutput,
    SchemaViolation,
    ImmutabilityViolation,
    InputValidationError
)
from .schemas import (
    FieldRecord,
    ExtractedFields,
    FollowupCandidate,
    IntakeExtraction,
    StructuralAbstraction,
    FullSpecification,
    BusinessContext
)
from .llm_client import LLMClient, LLMCompletion
from .field_extractor import FieldExtractor
from .followup_resolver import FollowupResolver, FollowupItem, FollowupSource
from .stage1_compiler import Stage1Compiler
from .stage2_compiler import Stage2Compiler, verify_immutability
from .pipeline import (
    SceneSpecPipeline,
    IntakeResult,
    Stage1Result,
    Stage2Result,
    CompileResult,
    RunMetadata
)

__all__ = [
    'SceneSpecPipeline',
    'IntakeResult',
    'Stage1Result',
    'Stage2Result',
    'CompileResult',
    'RunMetadata',
    'DomainVocabulary',
    'VOCABULARY',
    'IntakeField',
    'EnvironmentType',
    'FieldRecord',
    'ExtractedFields',
    'FollowupCandidate',
    'IntakeExtraction',
    'StructuralAbstraction',
    'FullSpecification',
    'BusinessContext',
    'LLMClient',
    'LLMCompletion',
    'FieldExtractor',
    'FollowupResolver',
    'FollowupItem',
    'FollowupSource',
    'Stage1Compiler',
    'Stage2Compiler',
    'verify_immutability',
    # Errors
    'PipelineError',
    'ExternalCallFailure',
    'MalformedOutput',
    'SchemaViolation',
    'ImmutabilityViolation',
    'InputValidationError',
]
