"""
Contract Schemas
================

Strict document contracts for every stage of the scene-spec pipeline:

- IntakeExtraction:        output of the Field Extractor
- StructuralAbstraction:   output of the Stage-1 compiler (task / environment / failure modes)
- FullSpecification:       output of the Stage-2 compiler (structural core + enrichment)

Every model forbids unknown keys and is frozen after validation. Scalars use
pydantic's strict types so nothing is silently coerced ("5" is not a number,
1 is not a boolean). Enumerable fields are typed with the closed vocabularies,
so an out-of-vocabulary value is a validation error, never a fallback.
"""

from typing import Annotated, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr

from .vocabulary import (
    DataModality,
    Embodiment,
    EnvironmentType,
    FailureMode,
    GeneralizationAxis,
    IntakeField,
    ObservabilityLevel,
    ResearchBottleneck,
    StateVariableType,
    TaskCategory,
    TaskEffector,
    TaskSensor,
    TaskSkill,
    TaskSubcategory,
    TimeHorizon,
    VariabilityLevel,
)

ValueT = TypeVar("ValueT")

Confidence = Annotated[StrictFloat, Field(ge=0.0, le=1.0)]
Score = Annotated[StrictInt, Field(ge=1, le=5)]
BusinessValueEstimate = Annotated[StrictFloat, Field(ge=1.0, le=5.0)]


class ContractModel(BaseModel):
    """Base for all pipeline documents: closed key set, immutable once validated."""

    model_config = ConfigDict(extra="forbid", frozen=True)


# ============================================================================
# Intake Extraction
# ============================================================================

class FieldRecord(ContractModel, Generic[ValueT]):
    """A value with the confidence and textual evidence that grounds it."""

    value: Optional[ValueT] = Field(None, description="Extracted value, null when not supported by the notes")
    confidence: Confidence = Field(..., description="How directly the value is supported by the text (0-1)")
    evidence: Optional[StrictStr] = Field(None, description="Short quoted snippet from the notes")


class ExtractedFields(ContractModel):
    """The nine supported intake fields, each as a Field Record."""

    task_description: FieldRecord[StrictStr]
    task_goal: FieldRecord[StrictStr]
    task_throughput: FieldRecord[StrictFloat] = Field(..., description="tasks/hr")
    environment_type: FieldRecord[EnvironmentType]
    environment_description: FieldRecord[StrictStr]
    safety_requirements: FieldRecord[StrictStr]
    key_environment_constraints: FieldRecord[StrictStr]
    key_environment_entities: FieldRecord[List[StrictStr]]
    required_tools: FieldRecord[List[StrictStr]]

    def record(self, field_name: IntakeField) -> FieldRecord:
        """Get the Field Record for an intake field."""
        return getattr(self, IntakeField(field_name).value)


class FollowupCandidate(ContractModel):
    """A clarification question proposed by the model."""

    field_name: IntakeField
    question: StrictStr
    why_needed: Optional[StrictStr] = None


class IntakeExtraction(ContractModel):
    """Complete output of the Field Extractor."""

    extracted: ExtractedFields
    followups: List[FollowupCandidate]
    customer_business_value: FieldRecord[BusinessValueEstimate]


# ============================================================================
# Structural Abstraction (Stage 1)
# ============================================================================

class SuccessSignal(ContractModel):
    name: StrictStr
    measurement: StrictStr
    threshold: StrictFloat


class RequiredTool(ContractModel):
    task_effectors: TaskEffector
    task_sensors: TaskSensor


class InterventionProfile(ContractModel):
    likely_triggers: List[StrictStr]
    expected_intervention_rate: StrictStr


class TaskAbstraction(ContractModel):
    task_category: TaskCategory
    task_subcategory: TaskSubcategory
    task_description: StrictStr
    task_goal: StrictStr
    task_success_signals: List[SuccessSignal]
    task_checkpoints: List[StrictStr]
    task_onramp: StrictStr
    task_offramp: StrictStr
    task_required_skills: List[TaskSkill]
    task_required_tools: List[RequiredTool]
    task_required_embodiment: Embodiment
    task_time_horizon: TimeHorizon
    task_intervention_profile: InterventionProfile
    task_throughput: StrictFloat = Field(..., description="tasks/hr")


class EnvironmentEntity(ContractModel):
    name: StrictStr
    description: StrictStr
    size: StrictFloat
    movable: StrictBool
    deformable: StrictBool
    fragile: StrictBool
    hazardous: StrictBool


class ValueRange(ContractModel):
    min: StrictFloat
    max: StrictFloat


class StateVariable(ContractModel):
    name: StrictStr
    type: StateVariableType
    description: StrictStr
    unit: StrictStr
    range: List[ValueRange]


class EnvironmentConstraints(ContractModel):
    space_constraints: StrictStr
    time_constraints: StrictStr
    resource_constraints: StrictStr
    safety_constraints: StrictStr
    noise_constraints: StrictStr


class GeneralizationAxisSpec(ContractModel):
    axis: GeneralizationAxis
    expected_variability: VariabilityLevel
    eval_hints: StrictStr


class EnvironmentAbstraction(ContractModel):
    environment_description: StrictStr
    environment_type: EnvironmentType
    environment_entities: List[EnvironmentEntity]
    environment_state_variables: List[StateVariable]
    environment_constraints: EnvironmentConstraints
    environment_generalization_axes: List[GeneralizationAxisSpec]
    environment_observability: ObservabilityLevel


class FailureModeAbstraction(ContractModel):
    failure_modes: List[FailureMode]


class StructuralAbstraction(ContractModel):
    """Stage-1 output: the ground-truth structural core of a scene spec."""

    task_abstraction: TaskAbstraction
    environment_abstraction: EnvironmentAbstraction
    failure_mode_abstraction: FailureModeAbstraction


# Sections Stage 2 must copy forward unchanged
STRUCTURAL_SECTIONS = (
    "task_abstraction",
    "environment_abstraction",
    "failure_mode_abstraction",
)


# ============================================================================
# Full Specification (Stage 2)
# ============================================================================

class AssumptionsAndUnknowns(ContractModel):
    assumptions: List[StrictStr]
    unknowns: List[StrictStr]


class DataCollectionRequirement(ContractModel):
    data_modalities: List[DataModality]
    data_labels: List[StrictStr]


class SkillCapture(ContractModel):
    research_bottlenecks: List[ResearchBottleneck]
    data_collection_requirements: List[DataCollectionRequirement]


class EvalAbstraction(ContractModel):
    offline_metrics: List[StrictStr]
    online_metrics: List[StrictStr]
    stress_tests: List[StrictStr]
    acceptance_criteria: List[StrictStr]


class PriorityScore(ContractModel):
    priority_customer_business_value: Score = Field(..., description="Externally supplied, passed through unchanged")
    priority_pi_technical_feasibility: Score = Field(..., description="5 = easiest")
    priority_pi_safety_risk: Score = Field(..., description="5 = highest risk")
    priority_pi_generalization_leverage: Score = Field(..., description="5 = highest leverage")
    priority_composite: Score
    priority_reasoning: StrictStr


class FullSpecification(StructuralAbstraction):
    """Stage-2 output: the complete scene specification."""

    assumptions_and_unknowns_abstraction: AssumptionsAndUnknowns
    skill_capture_abstraction: SkillCapture
    eval_abstraction: EvalAbstraction
    priority_score: PriorityScore


# Sections only Stage 2 may generate
ENRICHMENT_SECTIONS = (
    "assumptions_and_unknowns_abstraction",
    "skill_capture_abstraction",
    "eval_abstraction",
    "priority_score",
)


# ============================================================================
# Caller-supplied context
# ============================================================================

class BusinessContext(ContractModel):
    """Externally fixed business priority; never model-derived."""

    priority_customer_business_value: Score
