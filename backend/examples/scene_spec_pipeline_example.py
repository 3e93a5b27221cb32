#!/usr/bin/env python3
"""
Scene Spec Pipeline - Example Usage
===================================

This script walks site notes through the full scene specification pipeline:
intake, follow-up questions, Stage 1 and Stage 2.

Usage:
    python examples/scene_spec_pipeline_example.py notes.txt
    python examples/scene_spec_pipeline_example.py notes.txt --answers answers.json --business-value 4 -o spec.json

Requirements:
    - LLM_API_KEY (or OPENAI_API_KEY) environment variable
    - Optional: LLM_API_BASE / LLM_MODEL for an OpenAI-compatible endpoint
"""

import sys
import json
import argparse
import logging
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.services.scene_spec_pipeline import (
    SceneSpecPipeline,
    PipelineError,
    VOCABULARY
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NEEDS_ANSWERS = 2


def load_answers(answers_path: str) -> dict:
    """Load follow-up answers (field name -> answer) from a JSON file."""
    with open(answers_path, 'r') as f:
        answers = json.load(f)
    if not isinstance(answers, dict):
        raise ValueError(f"Answers file must contain a JSON object: {answers_path}")
    return answers


def print_followups(followups, answers: dict):
    print("\n" + "-" * 40)
    print("FOLLOW-UP QUESTIONS")
    print("-" * 40)
    for item in followups:
        status = "✓" if item.field_name.value in answers else "?"
        print(f"  {status} [{item.field_name.value}] {item.question}")
        if item.why_needed:
            print(f"    └─ {item.why_needed}")


def print_summary(result):
    spec = result.scene_spec
    task = spec.task_abstraction
    env = spec.environment_abstraction
    priority = spec.priority_score
    
    print("\n" + "=" * 60)
    print("SCENE SPECIFICATION")
    print("=" * 60)
    print(f"\nTask: {task.task_category.value} / {task.task_subcategory.value}")
    print(f"  {task.task_description}")
    print(f"Environment: {env.environment_type.value} (observability: {env.environment_observability.value})")
    print(f"Failure Modes: {', '.join(m.value for m in spec.failure_mode_abstraction.failure_modes)}")
    print(f"Research Bottlenecks: {', '.join(b.value for b in spec.skill_capture_abstraction.research_bottlenecks) or 'none'}")
    print(f"\nPriority: business={priority.priority_customer_business_value} "
          f"feasibility={priority.priority_pi_technical_feasibility} "
          f"risk={priority.priority_pi_safety_risk} "
          f"leverage={priority.priority_pi_generalization_leverage} "
          f"composite={priority.priority_composite}")
    print(f"  {priority.priority_reasoning}")
    print(f"\nTokens Used: {result.metadata.tokens_used}")
    print(f"Processing Time: {result.metadata.processing_time_ms}ms")


def show_vocabulary():
    """Print every closed vocabulary."""
    print("\n" + "=" * 60)
    print("CLOSED VOCABULARIES")
    print("=" * 60)
    print(f"\nTotal Vocabularies: {VOCABULARY.num_vocabularies}")
    for name, values in VOCABULARY.to_dict().items():
        print(f"\n{name}:")
        for value in values:
            print(f"  • {value}")


def check_value(name: str, value: str) -> int:
    """Report whether a value belongs to a named vocabulary (exact, case-sensitive)."""
    vocabulary = VOCABULARY.get(name)
    if vocabulary is None:
        print(f"Unknown vocabulary: {name}. Known: {', '.join(VOCABULARY.names)}")
        return EXIT_ERROR
    
    if VOCABULARY.is_member(vocabulary, value):
        print(f"✓ '{value}' is a member of {name}")
        return EXIT_OK
    
    print(f"✗ '{value}' is not a member of {name}")
    print(f"  Allowed: {VOCABULARY.render_inline(vocabulary)}")
    return EXIT_ERROR


def run(notes_path: str, answers_path: str = None, business_value: int = 3,
        output_path: str = None, pipeline: SceneSpecPipeline = None) -> int:
    """
    Run intake, then both compile stages if every follow-up is answered.
    
    Returns:
        Process exit code
    """
    notes_path = Path(notes_path)
    if not notes_path.exists():
        logger.error(f"File not found: {notes_path}")
        return EXIT_ERROR
    
    notes = notes_path.read_text()
    answers = load_answers(answers_path) if answers_path else {}
    pipeline = pipeline or SceneSpecPipeline()
    
    logger.info(f"Processing: {notes_path.name} ({len(notes):,} chars)")
    
    try:
        intake = pipeline.run_intake(notes)
        
        if intake.followups:
            print_followups(intake.followups, answers)
        
        unanswered = [f for f in intake.followups if f.field_name.value not in answers]
        if unanswered:
            print(f"\n{len(unanswered)} follow-up question(s) unanswered. "
                  f"Provide them with --answers and run again.")
            return EXIT_NEEDS_ANSWERS
        
        result = pipeline.compile(
            notes,
            intake.extraction.extracted,
            answers,
            {'priority_customer_business_value': business_value}
        )
    except PipelineError as e:
        logger.error(f"Pipeline failed at {e.stage} ({e.error_type}): {e.message}")
        print(json.dumps(e.to_dict(), indent=2))
        return EXIT_ERROR
    
    print_summary(result)
    
    if output_path:
        output_path = Path(output_path)
        with open(output_path, 'w') as f:
            json.dump(result.to_dict()['scene_spec'], f, indent=2)
        logger.info(f"Output saved to: {output_path}")
    
    return EXIT_OK


def main(argv=None, pipeline: SceneSpecPipeline = None) -> int:
    parser = argparse.ArgumentParser(
        description='Scene Spec Compiler Pipeline',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run intake and list follow-up questions
    python scene_spec_pipeline_example.py notes.txt
    
    # Compile with answers and save the scene spec
    python scene_spec_pipeline_example.py notes.txt --answers answers.json --business-value 4 -o spec.json
    
    # Show the closed vocabularies
    python scene_spec_pipeline_example.py --vocabulary
    
    # Check a value against a vocabulary
    python scene_spec_pipeline_example.py --check task_category "Pick Place"
        """
    )
    
    parser.add_argument('notes_path', nargs='?', help='Path to a text file with site notes')
    parser.add_argument('--answers', help='JSON file mapping field names to follow-up answers')
    parser.add_argument('--business-value', type=int, default=3, choices=range(1, 6),
                        help='Customer business value 1-5 (default: 3)')
    parser.add_argument('-o', '--output', help='Path to save the scene spec JSON')
    parser.add_argument('--vocabulary', action='store_true', help='Show the closed vocabularies')
    parser.add_argument('--check', nargs=2, metavar=('VOCABULARY', 'VALUE'),
                        help='Check whether a value belongs to a vocabulary')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose logging')
    
    args = parser.parse_args(argv)
    
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    
    if args.vocabulary:
        show_vocabulary()
        return EXIT_OK
    
    if args.check:
        return check_value(*args.check)
    
    if not args.notes_path:
        parser.print_help()
        return EXIT_ERROR
    
    return run(
        args.notes_path,
        answers_path=args.answers,
        business_value=args.business_value,
        output_path=args.output,
        pipeline=pipeline
    )


if __name__ == '__main__':
    sys.exit(main())
