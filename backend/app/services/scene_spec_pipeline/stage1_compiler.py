"""
Stage-1 Structural Compiler
===========================

Synthesizes notes + intake Field Records + follow-up answers into the
Structural Abstraction (task / environment / failure modes).

Ground-truth ordering:
----------------------
Follow-up answers override intake values on conflict. The override itself is
delegated to the model through the instructions; the compiler always
validates the SHAPE of the result against the Stage-1 contract regardless of
whether the content-level override happened.

No retries: a failure here is terminal for the request, and Stage 2 is never
attempted on top of it.
"""

import json
import logging
from typing import Mapping, Optional, Tuple

from app.config import Config

from .llm_client import LLMClient, LLMCompletion
from .schemas import ExtractedFields, StructuralAbstraction
from .validation import dump_document, parse_json_output, validate_contract
from .vocabulary import VOCABULARY

logger = logging.getLogger(__name__)

STAGE = "stage1"

# Empty document with every Stage-1 key, inlined as the output template
STRUCTURAL_TEMPLATE = {
    "task_abstraction": {
        "task_category": "",
        "task_subcategory": "",
        "task_description": "",
        "task_goal": "",
        "task_success_signals": [{"name": "", "measurement": "", "threshold": 0}],
        "task_checkpoints": [],
        "task_onramp": "",
        "task_offramp": "",
        "task_required_skills": [],
        "task_required_tools": [{"task_effectors": "", "task_sensors": ""}],
        "task_required_embodiment": "",
        "task_time_horizon": "",
        "task_intervention_profile": {"likely_triggers": [], "expected_intervention_rate": ""},
        "task_throughput": 0
    },
    "environment_abstraction": {
        "environment_description": "",
        "environment_type": "",
        "environment_entities": [{
            "name": "",
            "description": "",
            "size": 0,
            "movable": False,
            "deformable": False,
            "fragile": False,
            "hazardous": False
        }],
        "environment_state_variables": [{
            "name": "",
            "type": "",
            "description": "",
            "unit": "",
            "range": [{"min": 0, "max": 0}]
        }],
        "environment_constraints": {
            "space_constraints": "",
            "time_constraints": "",
            "resource_constraints": "",
            "safety_constraints": "",
            "noise_constraints": ""
        },
        "environment_generalization_axes": [{"axis": "", "expected_variability": "", "eval_hints": ""}],
        "environment_observability": ""
    },
    "failure_mode_abstraction": {"failure_modes": []}
}


class Stage1Compiler:
    """
    Compiles the Structural Abstraction with a single model call.
    """
    
    SYSTEM_PROMPT = "Return only valid JSON. No trailing commas. No markdown."
    
    COMPILE_PROMPT_TEMPLATE = """You are a structural abstraction compiler.

You are given:
1) Raw customer notes
2) Extracted grounded fields from intake (may contain nulls + confidences)
3) Followup answers from the user (ground truth; they override intake on conflict)

GOAL:
Return ONLY the structural abstraction JSON object with exactly these keys:
- task_abstraction
- environment_abstraction
- failure_mode_abstraction

ABSOLUTE RULES:
- Do NOT generate: assumptions_and_unknowns_abstraction, skill_capture_abstraction, eval_abstraction, priority_score.
- Do NOT speculate beyond provided information. If unknown, keep descriptions conservative.
- Obey enum constraints strictly. Do NOT invent enum values.
- Output must be valid JSON only (no markdown, no prose).

-----------------------------------------
STRICT ENUM CONSTRAINTS (INLINE)
-----------------------------------------

You may ONLY use these exact values:

{vocabulary}

"Other" RULE:
- Choose "Other" / "other" ONLY if none of the enum values clearly apply.
- When choosing it, make sure task_description / environment_description makes the category understandable.

-----------------------------------------
FIELD DEFINITIONS (STRUCTURAL ONLY)
-----------------------------------------

task_abstraction.task_category: high-level family of task (pick/place, assembly, inspection, etc.).
task_abstraction.task_subcategory: more specific class of task (e.g. "bin picking", "insertion", "machine tending").
task_abstraction.task_description: one clear sentence describing the physical action sequence (what moves where), grounded in notes + followups. No business value or research strategy.
task_abstraction.task_goal: concrete, externally verifiable done condition. If not explicit, infer minimally from the description and stay conservative.
task_abstraction.task_success_signals: 1-3 measurable signals for task_goal, each with:
  - name: signal name (e.g. "insertion depth")
  - measurement: how it is measured (e.g. "vision pose estimate", "force spike", "operator confirmation")
  - threshold: numeric threshold when possible; if unknown use a conservative placeholder (e.g. 1) and make the measurement text precise.
  Do NOT invent sensors.
task_abstraction.task_checkpoints: 2-5 intermediate milestones, not the final success (e.g. "approach object", "grasp acquired", "aligned to target").
task_abstraction.task_onramp: preconditions to start an episode (e.g. "part in bin", "robot at home pose").
task_abstraction.task_offramp: terminal state after completion or safe abort (e.g. "robot retreats", "returns to home pose").
task_abstraction.task_required_skills: only the skills clearly needed; do not list everything.
task_abstraction.task_required_tools: minimum effector + sensor pairs needed/available, enum values only. Prefer what is explicitly mentioned.
task_abstraction.task_required_embodiment: mobile if navigation is required, dual-arm if bimanual work is implied.
task_abstraction.task_time_horizon: short = seconds to <1 minute; medium = 1-10 minutes; long = >10 minutes or multi-stage workflow.
task_abstraction.task_intervention_profile:
  - likely_triggers: 2-5 situations where teleop intervention is likely (occlusion, misgrasp, alignment failure, human interference).
  - expected_intervention_rate: qualitative ("low", "medium", "high", "~1 per 20 attempts"); "unknown" if unknown.
task_abstraction.task_throughput: numeric tasks/hr if present in intake or followups; otherwise a conservative placeholder of 0.

environment_abstraction.environment_description: 2-3 sentences on physical layout (workcell, conveyor, bins, human proximity, lighting).
environment_abstraction.environment_type: choose "Other" only if truly ambiguous.
environment_abstraction.environment_entities: 3-8 key physical entities, each with name, short description, size (rough scalar; 0 if unknown) and movable/deformable/fragile/hazardous booleans (false if unknown).
environment_abstraction.environment_state_variables: 3-8 state variables that vary and matter for perception/control, each with name, type, description, unit ("" if unknown) and exactly one range object ({{"min": 0, "max": 0}} if unknown).
environment_abstraction.environment_constraints:
  - space_constraints: clearance / reach / workspace limits
  - time_constraints: timing windows / cycle time
  - resource_constraints: tools, power, consumables, staffing
  - safety_constraints: human zones, PPE, hazardous equipment (do not invent)
  - noise_constraints: sensing noise / occlusion / lighting variability
environment_abstraction.environment_generalization_axes: 2-5 axes that meaningfully vary in deployment, each with expected_variability and eval_hints (how to test the axis, e.g. "vary lighting from 200-800 lux").
environment_abstraction.environment_observability: full = all relevant state directly observable; partial = some hidden state; none = cannot observe reliably (rare).

failure_mode_abstraction.failure_modes: 3-8 plausible failure modes for this task/environment.

-----------------------------------------
INPUTS
-----------------------------------------

Raw Notes:
{notes}

Intake Extracted (may include confidences; use values as evidence):
{intake_extracted}

Followup Answers (override intake when conflict):
{intake_followups}

-----------------------------------------
OUTPUT TEMPLATE (RETURN JSON ONLY)
-----------------------------------------

Return JSON with EXACTLY this structure and keys:

{output_template}

No markdown. No commentary. Only JSON.
"""
    
    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        max_tokens: Optional[int] = None
    ):
        self.llm_client = llm_client or LLMClient()
        self.max_tokens = max_tokens or Config.COMPILE_MAX_TOKENS

    def compile(
        self,
        notes: str,
        extracted: ExtractedFields,
        followup_answers: Mapping[str, str]
    ) -> StructuralAbstraction:
        """
        Compile the Structural Abstraction.

        Args:
            notes: Raw site notes
            extracted: Validated intake Field Records (read-only)
            followup_answers: field name -> answer; ground truth over intake

        Returns:
            Validated StructuralAbstraction

        Raises:
            ExternalCallFailure, MalformedOutput, SchemaViolation
        """
        document, _ = self.run(notes, extracted, followup_answers)
        return document

    def run(
        self,
        notes: str,
        extracted: ExtractedFields,
        followup_answers: Mapping[str, str]
    ) -> Tuple[StructuralAbstraction, LLMCompletion]:
        """Compile and also return the completion metadata (tokens, model)."""
        logger.info(
            f"Stage 1: compiling structural abstraction "
            f"({len(followup_answers)} followup answer(s))"
        )
        
        completion = self.llm_client.complete(
            prompt=self.build_prompt(notes, extracted, followup_answers),
            system_prompt=self.SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            stage=STAGE
        )
        parsed = parse_json_output(completion.text, stage=STAGE)
        document = validate_contract(StructuralAbstraction, parsed, stage=STAGE)
        
        logger.info(
            f"Stage 1 validated: category={document.task_abstraction.task_category.value}, "
            f"environment={document.environment_abstraction.environment_type.value}, "
            f"{len(document.failure_mode_abstraction.failure_modes)} failure mode(s)"
        )
        return document, completion
    
    def build_prompt(
        self,
        notes: str,
        extracted: ExtractedFields,
        followup_answers: Mapping[str, str]
    ) -> str:
        """Build the Stage-1 prompt from template."""
        return self.COMPILE_PROMPT_TEMPLATE.format(
            vocabulary=VOCABULARY.render_constraints(VOCABULARY.STRUCTURAL_PATHS),
            notes=notes,
            intake_extracted=json.dumps(dump_document(extracted), indent=2),
            intake_followups=json.dumps(dict(followup_answers), indent=2),
            output_template=json.dumps(STRUCTURAL_TEMPLATE, indent=2)
        )
