"""
Follow-up Resolver
==================

Decides which intake fields are under-grounded and produces the ordered,
deduplicated, capped set of clarification questions for them.

Need determination:
-------------------
A supported field is NEEDED iff its confidence is below CONFIDENCE_THRESHOLD
or its value is null/absent. Confidence exactly at the threshold is grounded.

Merge rules:
------------
1. Model-proposed questions survive only for needed fields (first one wins
   when the model repeats a field).
2. Every needed field without a surviving question gets a fixed,
   human-authored fallback question.
3. Provided questions come first, then synthesized ones, capped at
   MAX_FOLLOWUPS.

The result length is always min(MAX_FOLLOWUPS, number of needed fields).
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .schemas import ExtractedFields, FollowupCandidate
from .vocabulary import IntakeField

logger = logging.getLogger(__name__)

# Fixed system constants, not user-configurable
CONFIDENCE_THRESHOLD = 0.7
MAX_FOLLOWUPS = 5

FALLBACK_RATIONALE = "Needed to complete the minimum grounding facts from site notes."

DEFAULT_QUESTIONS: Dict[str, str] = {
    IntakeField.TASK_DESCRIPTION.value: "In one sentence, what is the operator/robot doing step-by-step?",
    IntakeField.TASK_GOAL.value: "What is the concrete done condition (how do we know the task succeeded)?",
    IntakeField.TASK_THROUGHPUT.value: "Roughly what throughput is required (tasks/hour), even a range is fine?",
    IntakeField.ENVIRONMENT_TYPE.value: "What type of environment is this (warehouse, industrial, retail, etc.)?",
    IntakeField.ENVIRONMENT_DESCRIPTION.value: "Describe the physical setup/layout in 2-3 sentences.",
    IntakeField.SAFETY_REQUIREMENTS.value: "What safety constraints exist (humans nearby, sharp objects, PPE, zones)?",
    IntakeField.KEY_ENVIRONMENT_CONSTRAINTS.value: "What constraints matter most (space, time, resource, noise/variability)?",
    IntakeField.KEY_ENVIRONMENT_ENTITIES.value: "List the key objects/entities involved (bins, trays, SKUs, tools, etc.).",
    IntakeField.REQUIRED_TOOLS.value: "What tools/sensors are actually available (RGB, depth, force/torque, gripper type)?",
}


def default_question_for(field_name: str) -> str:
    """Fixed question for a field; a generic clarification for unknown names."""
    key = field_name.value if isinstance(field_name, IntakeField) else str(field_name)
    return DEFAULT_QUESTIONS.get(key, f"Can you clarify: {key}?")


class FollowupSource(str, Enum):
    """Where a follow-up question came from."""
    PROVIDED = "provided"        # proposed by the model
    SYNTHESIZED = "synthesized"  # filled in from the fallback table


@dataclass(frozen=True)
class FollowupItem:
    """One clarification question in the Follow-up Set."""
    field_name: IntakeField
    question: str
    why_needed: Optional[str]
    source: FollowupSource
    
    @classmethod
    def provided(cls, candidate: FollowupCandidate) -> "FollowupItem":
        return cls(
            field_name=candidate.field_name,
            question=candidate.question,
            why_needed=candidate.why_needed,
            source=FollowupSource.PROVIDED
        )
    
    @classmethod
    def synthesized(cls, field_name: IntakeField) -> "FollowupItem":
        return cls(
            field_name=field_name,
            question=default_question_for(field_name),
            why_needed=FALLBACK_RATIONALE,
            source=FollowupSource.SYNTHESIZED
        )
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'field_name': self.field_name.value,
            'question': self.question,
            'why_needed': self.why_needed,
            'source': self.source.value
        }


def is_needed(record) -> bool:
    """A Field Record needs follow-up iff it is low-confidence or has no value."""
    return record.value is None or record.confidence < CONFIDENCE_THRESHOLD


class FollowupResolver:
    """
    Resolves the Follow-up Set from an Intake Extraction.
    
    Stateless: safe to share across concurrent requests.
    """
    
    def needed_fields(self, extracted: ExtractedFields) -> List[IntakeField]:
        """Return the under-grounded fields, in canonical field order."""
        return [field for field in IntakeField if is_needed(extracted.record(field))]
    
    def resolve(
        self,
        extracted: ExtractedFields,
        candidates: Iterable[FollowupCandidate]
    ) -> List[FollowupItem]:
        """
        Build the Follow-up Set.
        
        Args:
            extracted: Validated intake Field Records
            candidates: Model-proposed follow-up questions
        
        Returns:
            Ordered follow-ups, model-provided first, at most MAX_FOLLOWUPS
        """
        needed = self.needed_fields(extracted)
        needed_set = set(needed)
        
        provided: List[FollowupItem] = []
        covered = set()
        discarded = 0
        for candidate in candidates:
            if candidate.field_name not in needed_set or candidate.field_name in covered:
                discarded += 1
                continue
            covered.add(candidate.field_name)
            provided.append(FollowupItem.provided(candidate))
        
        synthesized = [
            FollowupItem.synthesized(field) for field in needed if field not in covered
        ]
        
        followups = (provided + synthesized)[:MAX_FOLLOWUPS]
        
        logger.info(
            f"Follow-up resolution: {len(needed)} field(s) needed, "
            f"{len(provided)} provided, {len(synthesized)} synthesized, "
            f"{discarded} candidate(s) discarded, {len(followups)} returned"
        )
        return followups
