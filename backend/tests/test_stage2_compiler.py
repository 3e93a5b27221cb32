"""
Tests for the Stage-2 Enrichment Compiler and its immutability check.
"""

import copy
import json

import pytest

from app.services.scene_spec_pipeline.errors import ImmutabilityViolation, SchemaViolation
from app.services.scene_spec_pipeline.schemas import BusinessContext, StructuralAbstraction
from app.services.scene_spec_pipeline.stage2_compiler import (
    FULL_TEMPLATE,
    Stage2Compiler,
    first_difference,
    verify_immutability,
)
from app.services.scene_spec_pipeline.validation import dump_document


@pytest.fixture
def stage1(stage1_document):
    return StructuralAbstraction.model_validate(stage1_document)


@pytest.fixture
def context():
    return BusinessContext(priority_customer_business_value=4)


def _compile(fake_llm, stage1, context, document):
    fake_llm.queue(document)
    return Stage2Compiler(llm_client=fake_llm).compile("notes", stage1, context)


def test_faithful_copy_is_accepted(fake_llm, stage1, context, make_full_document):
    spec = _compile(fake_llm, stage1, context, make_full_document())

    for section in ("task_abstraction", "environment_abstraction", "failure_mode_abstraction"):
        assert dump_document(spec)[section] == dump_document(stage1)[section]
    assert spec.priority_score.priority_customer_business_value == 4
    assert fake_llm.calls[0]['stage'] == "stage2"


def test_priority_value_passes_through(fake_llm, stage1, make_full_document):
    context = BusinessContext(priority_customer_business_value=2)

    spec = _compile(fake_llm, stage1, context, make_full_document(business_value=2))

    assert spec.priority_score.priority_customer_business_value == 2


def test_altered_business_value_is_rejected(fake_llm, stage1, context, make_full_document):
    with pytest.raises(ImmutabilityViolation) as exc_info:
        _compile(fake_llm, stage1, context, make_full_document(business_value=5))

    assert exc_info.value.sections == ["priority_score.priority_customer_business_value"]
    difference = exc_info.value.mismatches[0]['first_difference']
    assert (difference['expected'], difference['actual']) == ("4", "5")


def test_reordered_array_is_rejected(fake_llm, stage1, stage1_document, context, make_full_document):
    mutated = copy.deepcopy(stage1_document)
    mutated['failure_mode_abstraction']['failure_modes'].reverse()

    with pytest.raises(ImmutabilityViolation) as exc_info:
        _compile(fake_llm, stage1, context, make_full_document(stage1=mutated))

    assert exc_info.value.sections == ["failure_mode_abstraction"]
    assert exc_info.value.mismatches[0]['first_difference']['path'] == "failure_mode_abstraction.failure_modes[0]"


def test_whitespace_change_is_rejected(fake_llm, stage1, stage1_document, context, make_full_document):
    mutated = copy.deepcopy(stage1_document)
    mutated['task_abstraction']['task_goal'] += " "

    with pytest.raises(ImmutabilityViolation) as exc_info:
        _compile(fake_llm, stage1, context, make_full_document(stage1=mutated))

    assert exc_info.value.mismatches[0]['first_difference']['path'] == "task_abstraction.task_goal"


def test_every_mutated_section_is_reported(fake_llm, stage1, stage1_document, context, make_full_document):
    mutated = copy.deepcopy(stage1_document)
    mutated['task_abstraction']['task_checkpoints'].append("extra checkpoint")
    mutated['environment_abstraction']['environment_description'] = "Paraphrased layout."

    with pytest.raises(ImmutabilityViolation) as exc_info:
        _compile(fake_llm, stage1, context, make_full_document(stage1=mutated, business_value=1))

    assert exc_info.value.sections == [
        "task_abstraction",
        "environment_abstraction",
        "priority_score.priority_customer_business_value",
    ]
    assert exc_info.value.stage == "stage2"


def test_schema_violation_precedes_immutability_check(fake_llm, stage1, context, make_full_document):
    document = make_full_document()
    del document['eval_abstraction']

    with pytest.raises(SchemaViolation) as exc_info:
        _compile(fake_llm, stage1, context, document)

    assert "eval_abstraction" in exc_info.value.paths


def test_prompt_declares_stage1_immutable_and_lists_all_vocabularies(fake_llm, stage1, context):
    prompt = Stage2Compiler(llm_client=fake_llm).build_prompt("the notes", stage1, context)

    assert "IMMUTABLE SOURCE OF TRUTH" in prompt
    assert json.dumps(dump_document(stage1), indent=2) in prompt
    assert json.dumps(FULL_TEMPLATE, indent=2) in prompt
    assert "priority_customer_business_value MUST equal the provided business priority exactly: 4" in prompt
    assert "research_bottlenecks[*] ∈ [" in prompt
    assert "data_collection_requirements[*].data_modalities[*] ∈ [" in prompt
    assert "task_category ∈ [" in prompt


def test_verify_immutability_accepts_identical_sections(stage1, context, make_full_document):
    from app.services.scene_spec_pipeline.schemas import FullSpecification

    verify_immutability(stage1, FullSpecification.model_validate(make_full_document()), context)


def test_first_difference():
    assert first_difference({'a': [1, 2]}, {'a': [1, 2]}) is None
    assert first_difference({'a': [1, 2]}, {'a': [2, 1]})['path'] == "$.a[0]"
    assert first_difference({'a': [1]}, {'a': [1, 2]})['path'] == "$.a"
    assert first_difference({'a': 1}, {'b': 1})['path'] == "$.a"
    assert first_difference({'flag': True}, {'flag': 1})['path'] == "$.flag"
    assert first_difference("x", "x ") == {'path': "$", 'expected': '"x"', 'actual': '"x "'}
