"""
Shared fixtures for the scene spec pipeline tests.

The language model is replaced by a scripted fake client: each call pops the
next queued response (a JSON-able object, raw text, or an exception to raise)
and records the prompt it was given.
"""

import copy
import json

import pytest

from app.services.scene_spec_pipeline.llm_client import LLMCompletion

ROUND_TRIP_NOTES = (
    "Robot picks parts from a bin and places them in a tray; success is part fully seated."
)


class FakeLLMClient:
    """Scripted stand-in for LLMClient."""

    def __init__(self, responses=None, model_name="fake-model", tokens_per_call=100):
        self.responses = list(responses or [])
        self.model_name = model_name
        self.tokens_per_call = tokens_per_call
        self.calls = []

    @property
    def is_available(self):
        return True

    def queue(self, *responses):
        self.responses.extend(responses)

    @property
    def stages_called(self):
        return [call['stage'] for call in self.calls]

    def complete(self, prompt, system_prompt, max_tokens, stage=None):
        self.calls.append({
            'prompt': prompt,
            'system_prompt': system_prompt,
            'max_tokens': max_tokens,
            'stage': stage,
        })
        if not self.responses:
            raise AssertionError(f"Unexpected model call for stage {stage}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        text = response if isinstance(response, str) else json.dumps(response)
        return LLMCompletion(text=text, model=self.model_name, tokens_used=self.tokens_per_call, latency_ms=5)


def _record(value, confidence, evidence=None):
    return {'value': value, 'confidence': confidence, 'evidence': evidence}


INTAKE_DOCUMENT = {
    'extracted': {
        'task_description': _record(
            "Robot picks parts from a bin and places them in a tray.", 0.95,
            "Robot picks parts from a bin and places them in a tray"),
        'task_goal': _record("Part is fully seated in the tray.", 0.9, "success is part fully seated"),
        'task_throughput': _record(None, 0.2),
        'environment_type': _record("Industrial", 0.75, "parts from a bin"),
        'environment_description': _record("Workcell with a parts bin and a tray.", 0.8, "from a bin"),
        'safety_requirements': _record(None, 0.1),
        'key_environment_constraints': _record("Part must be fully seated.", 0.7, "fully seated"),
        'key_environment_entities': _record(["bin", "parts", "tray"], 0.9, "bin ... tray"),
        'required_tools': _record(None, 0.3),
    },
    'followups': [
        {
            'field_name': "task_throughput",
            'question': "How many parts per hour must be placed?",
            'why_needed': "Throughput drives cycle-time constraints.",
        },
    ],
    'customer_business_value': _record(None, 0.2),
}


STAGE1_DOCUMENT = {
    'task_abstraction': {
        'task_category': "Pick Place",
        'task_subcategory': "bin picking",
        'task_description': "Robot picks parts from a bin and places them in a tray.",
        'task_goal': "Part is fully seated in the tray.",
        'task_success_signals': [
            {'name': "seating depth", 'measurement': "vision pose estimate", 'threshold': 1.0},
        ],
        'task_checkpoints': ["approach bin", "grasp acquired", "aligned to tray slot"],
        'task_onramp': "Parts present in bin, robot at home pose.",
        'task_offramp': "Robot retreats to home pose.",
        'task_required_skills': ["grasp planning", "object recognition"],
        'task_required_tools': [
            {'task_effectors': "prehensile gripper", 'task_sensors': "visual sensors"},
        ],
        'task_required_embodiment': "single-arm",
        'task_time_horizon': "short",
        'task_intervention_profile': {
            'likely_triggers': ["misgrasp", "part occluded in bin"],
            'expected_intervention_rate': "low",
        },
        'task_throughput': 120.0,
    },
    'environment_abstraction': {
        'environment_description': "Fixed workcell with a parts bin and an output tray.",
        'environment_type': "Industrial",
        'environment_entities': [
            {
                'name': "bin", 'description': "Parts bin", 'size': 0.0,
                'movable': False, 'deformable': False, 'fragile': False, 'hazardous': False,
            },
            {
                'name': "tray", 'description': "Output tray", 'size': 0.0,
                'movable': True, 'deformable': False, 'fragile': False, 'hazardous': False,
            },
        ],
        'environment_state_variables': [
            {
                'name': "part pose", 'type': "continuous", 'description': "Pose of the part in the bin",
                'unit': "m", 'range': [{'min': 0.0, 'max': 0.5}],
            },
        ],
        'environment_constraints': {
            'space_constraints': "Compact workcell",
            'time_constraints': "",
            'resource_constraints': "",
            'safety_constraints': "",
            'noise_constraints': "Clutter in bin",
        },
        'environment_generalization_axes': [
            {'axis': "object occlusion", 'expected_variability': "medium", 'eval_hints': "vary bin fill level"},
            {'axis': "lighting", 'expected_variability': "low", 'eval_hints': "vary lighting 200-800 lux"},
        ],
        'environment_observability': "partial",
    },
    'failure_mode_abstraction': {
        'failure_modes': ["Perception Failure", "Grasping/Manipulation Failure", "Action Execution Failure"],
    },
}


ENRICHMENT_DOCUMENT = {
    'assumptions_and_unknowns_abstraction': {
        'assumptions': ["fixed workcell", "known part set"],
        'unknowns': ["required throughput", "safety zoning"],
    },
    'skill_capture_abstraction': {
        'research_bottlenecks': ["pose estimation", "precision control"],
        'data_collection_requirements': [
            {'data_modalities': ["rgb", "depth"], 'data_labels': ["grasp success", "seating success"]},
        ],
    },
    'eval_abstraction': {
        'offline_metrics': ["success rate", "time-to-complete"],
        'online_metrics': ["intervention rate"],
        'stress_tests': ["vary bin fill level"],
        'acceptance_criteria': [">98% success over 200 trials"],
    },
    'priority_score': {
        'priority_customer_business_value': 4,
        'priority_pi_technical_feasibility': 4,
        'priority_pi_safety_risk': 2,
        'priority_pi_generalization_leverage': 3,
        'priority_composite': 4,
        'priority_reasoning': "Well-scoped bin picking with moderate perception risk.",
    },
}


@pytest.fixture
def fake_llm():
    return FakeLLMClient()


@pytest.fixture
def intake_document():
    return copy.deepcopy(INTAKE_DOCUMENT)


@pytest.fixture
def stage1_document():
    return copy.deepcopy(STAGE1_DOCUMENT)


@pytest.fixture
def make_full_document():
    """Factory: Stage-1 document (default fixture content) + enrichment sections."""

    def _make(stage1=None, business_value=4):
        document = copy.deepcopy(stage1 if stage1 is not None else STAGE1_DOCUMENT)
        document.update(copy.deepcopy(ENRICHMENT_DOCUMENT))
        document['priority_score']['priority_customer_business_value'] = business_value
        return document

    return _make


@pytest.fixture
def round_trip_notes():
    return ROUND_TRIP_NOTES
