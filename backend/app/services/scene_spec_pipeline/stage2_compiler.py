"""
Stage-2 Enrichment Compiler
===========================

Given the Stage-1 Structural Abstraction as IMMUTABLE source of truth and an
externally fixed business priority, synthesizes the remaining sections:

- assumptions_and_unknowns_abstraction
- skill_capture_abstraction
- eval_abstraction
- priority_score

CRITICAL DESIGN PRINCIPLE:
--------------------------
The model is told to copy task_abstraction, environment_abstraction and
failure_mode_abstraction verbatim. That instruction only reduces how often
copying goes wrong; it is NOT the guarantee. After parsing and schema
validation, every structural section is compared with the Stage-1 original by
deep equality, and priority_customer_business_value is compared with the
supplied value. Any difference discards the whole result with an
ImmutabilityViolation. There is no merge or patch fallback.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from app.config import Config

from .errors import ImmutabilityViolation
from .llm_client import LLMClient, LLMCompletion
from .schemas import (
    ENRICHMENT_SECTIONS,
    STRUCTURAL_SECTIONS,
    BusinessContext,
    FullSpecification,
    StructuralAbstraction,
)
from .stage1_compiler import STRUCTURAL_TEMPLATE
from .validation import dump_document, parse_json_output, validate_contract
from .vocabulary import VOCABULARY

logger = logging.getLogger(__name__)

STAGE = "stage2"

ENRICHMENT_TEMPLATE = {
    "skill_capture_abstraction": {
        "research_bottlenecks": [],
        "data_collection_requirements": [{"data_modalities": [], "data_labels": []}]
    },
    "eval_abstraction": {
        "offline_metrics": [],
        "online_metrics": [],
        "stress_tests": [],
        "acceptance_criteria": []
    },
    "priority_score": {
        "priority_customer_business_value": 0,
        "priority_pi_technical_feasibility": 0,
        "priority_pi_safety_risk": 0,
        "priority_pi_generalization_leverage": 0,
        "priority_composite": 0,
        "priority_reasoning": ""
    }
}

FULL_TEMPLATE = {
    "assumptions_and_unknowns_abstraction": {"assumptions": [], "unknowns": []},
    **STRUCTURAL_TEMPLATE,
    **ENRICHMENT_TEMPLATE,
}

_EXCERPT_CHARS = 120


def _excerpt(value: Any) -> str:
    text = json.dumps(value, sort_keys=True, default=str)
    return text if len(text) <= _EXCERPT_CHARS else text[:_EXCERPT_CHARS] + "..."


def first_difference(expected: Any, actual: Any, path: str = "$") -> Optional[Dict[str, str]]:
    """
    Locate the first point where two JSON-like structures differ.

    Returns None when they are deeply equal. Lists compare element by element
    in order, strings compare exactly (whitespace included).
    """
    if isinstance(expected, dict) and isinstance(actual, dict):
        for key in sorted(set(expected) | set(actual)):
            if key not in actual:
                return {'path': f"{path}.{key}", 'expected': _excerpt(expected[key]), 'actual': "<missing>"}
            if key not in expected:
                return {'path': f"{path}.{key}", 'expected': "<missing>", 'actual': _excerpt(actual[key])}
            diff = first_difference(expected[key], actual[key], f"{path}.{key}")
            if diff:
                return diff
        return None
    
    if isinstance(expected, list) and isinstance(actual, list):
        for index, (left, right) in enumerate(zip(expected, actual)):
            diff = first_difference(left, right, f"{path}[{index}]")
            if diff:
                return diff
        if len(expected) != len(actual):
            return {
                'path': f"{path}",
                'expected': f"{len(expected)} item(s)",
                'actual': f"{len(actual)} item(s)"
            }
        return None
    
    if type(expected) is bool or type(actual) is bool:
        same = type(expected) is type(actual) and expected == actual
    else:
        same = expected == actual
    if same:
        return None
    return {'path': path, 'expected': _excerpt(expected), 'actual': _excerpt(actual)}


def verify_immutability(
    stage1_output: StructuralAbstraction,
    result: FullSpecification,
    business_context: BusinessContext
) -> None:
    """
    Mechanically verify that Stage 2 preserved everything it was told to copy.
    
    Raises:
        ImmutabilityViolation: listing every mutated section
    """
    original = dump_document(stage1_output)
    produced = dump_document(result)
    
    mismatches: List[Dict[str, Any]] = []
    for section in STRUCTURAL_SECTIONS:
        if original[section] != produced[section]:
            diff = first_difference(original[section], produced[section], section)
            mismatches.append({'section': section, 'first_difference': diff})
    
    expected_value = business_context.priority_customer_business_value
    actual_value = result.priority_score.priority_customer_business_value
    if actual_value != expected_value:
        mismatches.append({
            'section': "priority_score.priority_customer_business_value",
            'first_difference': {
                'path': "priority_score.priority_customer_business_value",
                'expected': str(expected_value),
                'actual': str(actual_value)
            }
        })
    
    if mismatches:
        sections = ", ".join(m['section'] for m in mismatches)
        logger.error(f"Stage 2 mutated immutable content: {sections}")
        raise ImmutabilityViolation(
            f"Stage 2 mutated immutable content: {sections}",
            stage=STAGE,
            mismatches=mismatches
        )


class Stage2Compiler:
    """
    Compiles the Full Specification on top of a validated Stage-1 output.
    """
    
    SYSTEM_PROMPT = "Return only valid JSON. No trailing commas. No markdown."
    
    COMPILE_PROMPT_TEMPLATE = """You are a deterministic research compiler.

INPUTS:
1) Raw customer notes
2) Stage 1 Output (structural abstraction) - IMMUTABLE SOURCE OF TRUTH
3) Business priority (1-5) - IMMUTABLE

GOAL:
Return a SINGLE JSON object that matches the template exactly.
You must:
A) COPY Stage 1 fields verbatim (byte-for-byte identical strings, same array order).
B) FILL ONLY the remaining sections:
   - {enrichment_sections}

ABSOLUTE IMMUTABILITY RULE:
- You are NOT allowed to modify, rewrite, paraphrase, reorder, or "improve" ANY content under:
  - {structural_sections}
These must be copied exactly from Stage 1 Output into the final JSON.
If there is any conflict between your reasoning and Stage 1 Output, Stage 1 Output wins.

ENUM CONSTRAINTS (STRICT):
You may ONLY use the following exact values.

{vocabulary}

If none apply, use "Other" or "other" EXACTLY as written and justify it in assumptions.

FIELD DEFINITIONS (ONLY FOR FIELDS YOU GENERATE IN STAGE 2):

assumptions_and_unknowns_abstraction.assumptions: operating assumptions required to proceed (e.g. "fixed workcell", "known SKU set", "stable lighting"). Use this to justify any "Other"/"other" enum choice.
assumptions_and_unknowns_abstraction.unknowns: missing facts that could materially change feasibility, safety, evaluation design, or scope.

skill_capture_abstraction.research_bottlenecks: only bottlenecks that are necessary blockers implied by the task/environment. Prefer fewer, higher-signal bottlenecks.
skill_capture_abstraction.data_collection_requirements:
  - data_modalities: sensor streams needed to learn / teleop / validate.
  - data_labels: supervision signals required (success/failure, contact events, pose labels, intervention triggers, etc.).

eval_abstraction.offline_metrics: lab-measurable metrics (success rate, time-to-complete, collisions, dropped objects, force thresholds exceeded).
eval_abstraction.online_metrics: live deployment metrics (intervention rate, uptime, throughput achieved, safety events, abort rate).
eval_abstraction.stress_tests: perturbations across the generalization axes (lighting, occlusion, SKU variance, layout variation, human interaction).
eval_abstraction.acceptance_criteria: clear go/no-go thresholds (e.g. ">98% success over 200 trials", "<1 intervention / 30 mins").

priority_score:
- priority_customer_business_value MUST equal the provided business priority exactly: {business_value}
- priority_pi_technical_feasibility: integer 1-5 (5 = easiest)
- priority_pi_safety_risk: integer 1-5 (5 = highest risk)
- priority_pi_generalization_leverage: integer 1-5 (5 = highest leverage)
- priority_composite: integer 1-5 (no floats)
- priority_reasoning: short, concrete justification based on task complexity, risk, generalization axes, and business value.

CONSERVATIVE RULES:
- If info is insufficient: add to unknowns; do not hallucinate.
- Do not inflate generalization leverage.
- Do not invent research bottlenecks unless implied.
- Do not introduce new enum values.

RAW NOTES:
{notes}

STAGE 1 OUTPUT (COPY VERBATIM):
{stage1_output}

BUSINESS PRIORITY (IMMUTABLE):
{business_value}

OUTPUT REQUIREMENTS:
- Return ONLY valid JSON (no markdown, no prose).
- Match EXACTLY the following template's keys and nesting.
- IMPORTANT: {structural_sections} must be copied exactly from Stage 1 output.

Return JSON with EXACTLY this structure:
{output_template}
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
        stage1_output: StructuralAbstraction,
        business_context: BusinessContext
    ) -> FullSpecification:
        """
        Compile the Full Specification.
        
        Args:
            notes: Raw site notes
            stage1_output: Validated Stage-1 document (immutable ground truth)
            business_context: Externally fixed business priority
        
        Returns:
            Validated FullSpecification whose structural sections equal Stage 1
        
        Raises:
            ExternalCallFailure, MalformedOutput, SchemaViolation, ImmutabilityViolation
        """
        document, _ = self.run(notes, stage1_output, business_context)
        return document
    
    def run(
        self,
        notes: str,
        stage1_output: StructuralAbstraction,
        business_context: BusinessContext
    ) -> Tuple[FullSpecification, LLMCompletion]:
        """Compile and also return the completion metadata (tokens, model)."""
        logger.info(
            f"Stage 2: enriching specification "
            f"(business value {business_context.priority_customer_business_value})"
        )
        
        completion = self.llm_client.complete(
            prompt=self.build_prompt(notes, stage1_output, business_context),
            system_prompt=self.SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            stage=STAGE
        )
        parsed = parse_json_output(completion.text, stage=STAGE)
        document = validate_contract(FullSpecification, parsed, stage=STAGE)
        verify_immutability(stage1_output, document, business_context)
        
        logger.info(
            f"Stage 2 validated: composite priority {document.priority_score.priority_composite}, "
            f"{len(document.skill_capture_abstraction.research_bottlenecks)} bottleneck(s), "
            f"structural sections verified unchanged"
        )
        return document, completion
    
    def build_prompt(
        self,
        notes: str,
        stage1_output: StructuralAbstraction,
        business_context: BusinessContext
    ) -> str:
        """Build the Stage-2 prompt from template."""
        paths = dict(VOCABULARY.STRUCTURAL_PATHS)
        paths.update(VOCABULARY.ENRICHMENT_PATHS)
        
        return self.COMPILE_PROMPT_TEMPLATE.format(
            enrichment_sections="\n   - ".join(ENRICHMENT_SECTIONS),
            structural_sections=", ".join(STRUCTURAL_SECTIONS),
            vocabulary=VOCABULARY.render_constraints(paths),
            business_value=business_context.priority_customer_business_value,
            notes=notes,
            stage1_output=json.dumps(dump_document(stage1_output), indent=2),
            output_template=json.dumps(FULL_TEMPLATE, indent=2)
        )
