"""
Field Extractor
===============

Turns free-text site notes into the Intake Extraction document: one Field
Record (value, confidence, evidence) per supported field, plus the model's
proposed follow-up questions and a business-value estimate.

The model is instructed to be conservative: anything not supported by the
notes must come back as value=null with confidence <= 0.4. The extractor
itself never trusts that instruction - the result is parsed and validated
against the IntakeExtraction contract, and an invalid document is rejected
whole.
"""

import json
import logging
from typing import Optional, Tuple

from app.config import Config

from .llm_client import LLMClient, LLMCompletion
from .schemas import IntakeExtraction
from .validation import parse_json_output, validate_contract
from .vocabulary import VOCABULARY, EnvironmentType, IntakeField

logger = logging.getLogger(__name__)

STAGE = "intake"


class FieldExtractor:
    """
    Extracts grounded intake fields from site notes with a single model call.
    """
    
    SYSTEM_PROMPT = "Return only valid JSON. No trailing commas. No markdown. No explanations."
    
    EXTRACTION_PROMPT_TEMPLATE = """You are a robotics research operations lead reviewing customer site notes.

Your job:
- Extract structured information ONLY from the notes.
- Do NOT speculate beyond the text.
- If a field is not supported by the notes, set value = null and confidence <= 0.4.
- Quote short evidence snippets from the notes when possible.
- confidence must be between 0 and 1 and reflect how directly the value is supported by the text.
- Return STRICT JSON. No markdown. No explanations. No extra or missing keys.

FIELD DEFINITIONS (be precise and conservative):

task_description:
- Describe the physical sequence of actions performed.
- Focus on observable motion (pick, place, insert, inspect).
- Do NOT include goals, constraints, or throughput.
- One sentence only.

task_goal:
- The measurable completion condition.
- Examples: "Part is inserted flush", "Item placed in tote", "Surface fully sanded".
- Must describe how success is externally verified.
- If no explicit done condition is stated, set value = null.

task_throughput:
- Numeric estimate of tasks/hour or cycles/hour.
- If only qualitative language like "fast" or "high volume" appears, set value = null.
- Do not guess numbers.

environment_type:
- Categorize the deployment setting.
- Must be EXACTLY one of: {environment_types}.
- Case-sensitive. Use the exact strings above.
- Must be directly supported by the notes. If ambiguous, set value = null.

environment_description:
- Physical layout details: workcells, bins, conveyors, lighting conditions, proximity to humans.
- Avoid repeating task_description.

safety_requirements:
- Explicit safety constraints: human proximity, PPE, safety zones, hazardous tools, compliance requirements.
- Do not invent safety risks.

key_environment_constraints:
- Real constraints that affect deployment: space limitations, time deadlines, SKU variability, lighting variability, noise, resource limits.
- Only include constraints mentioned or strongly implied.

key_environment_entities:
- Physical objects involved in the task (bins, trays, SKUs, tools, machines), as a list of strings.
- Do NOT include abstract concepts.

required_tools:
- Sensors or effectors explicitly mentioned (RGB camera, depth, force/torque, suction gripper, etc.), as a list of strings.
- If not mentioned, set value = null.

customer_business_value:
- Number from 1 to 5 representing business priority (1 = low, 5 = critical).
- Only extract if explicitly stated or strongly implied. If not mentioned, set value = null.

followups:
- Only include followups for fields where value is null or confidence < 0.7.
- field_name must be EXACTLY one of: {intake_fields}.
- Maximum 5 followups.

Return this exact top-level structure:
{output_template}

NOTES:
{notes}
"""
    
    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        max_tokens: Optional[int] = None
    ):
        """
        Initialize the extractor.
        
        Args:
            llm_client: Model client (a default LLMClient if not provided)
            max_tokens: Output-length budget for the extraction call
        """
        self.llm_client = llm_client or LLMClient()
        self.max_tokens = max_tokens or Config.EXTRACTION_MAX_TOKENS
    
    def extract(self, notes: str) -> IntakeExtraction:
        """
        Extract the Intake Extraction document from notes.
        
        Args:
            notes: Free-text site notes
        
        Returns:
            Validated IntakeExtraction
        
        Raises:
            ExternalCallFailure: model call failed or returned no usable text
            MalformedOutput: model text is not JSON
            SchemaViolation: JSON does not match the intake contract
        """
        document, _ = self.run(notes)
        return document

    def run(self, notes: str) -> Tuple[IntakeExtraction, LLMCompletion]:
        """Extract and also return the completion metadata (tokens, model)."""
        logger.info(f"Extracting intake fields from notes ({len(notes)} chars)")

        completion = self.llm_client.complete(
            prompt=self.build_prompt(notes),
            system_prompt=self.SYSTEM_PROMPT,
            max_tokens=self.max_tokens,
            stage=STAGE
        )
        parsed = parse_json_output(completion.text, stage=STAGE)
        document = validate_contract(IntakeExtraction, parsed, stage=STAGE)

        logger.info(
            f"Intake extraction validated: {len(document.followups)} model-proposed followup(s), "
            f"{completion.tokens_used} tokens"
        )
        return document, completion
    
    def build_prompt(self, notes: str) -> str:
        """Build the extraction prompt from template."""
        return self.EXTRACTION_PROMPT_TEMPLATE.format(
            environment_types=VOCABULARY.render_inline(EnvironmentType),
            intake_fields=VOCABULARY.render_inline(IntakeField),
            output_template=json.dumps(self._output_template(), indent=2),
            notes=notes
        )
    
    @staticmethod
    def _output_template() -> dict:
        """Shape of the expected document, with type hints as placeholder values."""
        def record(value_type: str) -> dict:
            return {"value": f"{value_type}|null", "confidence": "number", "evidence": "string|null"}
        
        value_types = {
            IntakeField.TASK_DESCRIPTION: "string",
            IntakeField.TASK_GOAL: "string",
            IntakeField.TASK_THROUGHPUT: "number",
            IntakeField.ENVIRONMENT_TYPE: "string",
            IntakeField.ENVIRONMENT_DESCRIPTION: "string",
            IntakeField.SAFETY_REQUIREMENTS: "string",
            IntakeField.KEY_ENVIRONMENT_CONSTRAINTS: "string",
            IntakeField.KEY_ENVIRONMENT_ENTITIES: "string[]",
            IntakeField.REQUIRED_TOOLS: "string[]",
        }
        return {
            "extracted": {field.value: record(value_types[field]) for field in IntakeField},
            "followups": [{"field_name": "string", "question": "string", "why_needed": "string"}],
            "customer_business_value": record("number"),
        }
