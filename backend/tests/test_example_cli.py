"""
Tests for the command-line runner in backend/examples.
"""

import importlib.util
import json
from pathlib import Path

import pytest

from app.services.scene_spec_pipeline import SceneSpecPipeline

EXAMPLE_PATH = Path(__file__).resolve().parents[1] / "examples" / "scene_spec_pipeline_example.py"


@pytest.fixture(scope="module")
def cli():
    spec = importlib.util.spec_from_file_location("scene_spec_pipeline_example", EXAMPLE_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def notes_file(tmp_path, round_trip_notes):
    path = tmp_path / "notes.txt"
    path.write_text(round_trip_notes)
    return path


def test_unanswered_followups_exit_with_code_two(cli, fake_llm, intake_document, notes_file, capsys):
    fake_llm.queue(intake_document)

    code = cli.main([str(notes_file)], pipeline=SceneSpecPipeline(llm_client=fake_llm))

    assert code == 2
    assert "unanswered" in capsys.readouterr().out
    assert fake_llm.stages_called == ["intake"]


def test_answered_followups_compile_and_write_output(cli, fake_llm, intake_document, stage1_document,
                                                     make_full_document, notes_file, tmp_path):
    answers_path = tmp_path / "answers.json"
    answers_path.write_text(json.dumps({
        'task_throughput': "120 per hour",
        'safety_requirements': "Fenced cell",
        'required_tools': "RGB camera, parallel gripper",
    }))
    output_path = tmp_path / "spec.json"
    fake_llm.queue(intake_document, stage1_document, make_full_document(business_value=4))

    code = cli.main(
        [str(notes_file), "--answers", str(answers_path), "--business-value", "4", "-o", str(output_path)],
        pipeline=SceneSpecPipeline(llm_client=fake_llm),
    )

    assert code == 0
    written = json.loads(output_path.read_text())
    assert written['priority_score']['priority_customer_business_value'] == 4
    assert fake_llm.stages_called == ["intake", "stage1", "stage2"]


def test_pipeline_error_exits_with_code_one(cli, fake_llm, notes_file, capsys):
    fake_llm.queue("not json")

    code = cli.main([str(notes_file)], pipeline=SceneSpecPipeline(llm_client=fake_llm))

    assert code == 1
    assert "malformed_output" in capsys.readouterr().out


def test_missing_notes_file(cli, fake_llm, tmp_path):
    code = cli.main([str(tmp_path / "missing.txt")], pipeline=SceneSpecPipeline(llm_client=fake_llm))

    assert code == 1
    assert fake_llm.calls == []


def test_vocabulary_listing(cli, capsys):
    assert cli.main(["--vocabulary"]) == 0
    assert "Pick Place" in capsys.readouterr().out


def test_vocabulary_listing_reports_total(cli, capsys):
    cli.main(["--vocabulary"])

    assert "Total Vocabularies: 16" in capsys.readouterr().out


@pytest.mark.parametrize("name, value, expected_code", [
    ("task_category", "Pick Place", 0),
    ("task_category", "pick place", 1),
    ("environment_type", "Other", 0),
    ("research_bottleneck", "Other", 1),
    ("not_a_vocabulary", "x", 1),
])
def test_check_value_against_vocabulary(cli, capsys, name, value, expected_code):
    assert cli.main(["--check", name, value]) == expected_code
    assert value in capsys.readouterr().out or name == "not_a_vocabulary"
