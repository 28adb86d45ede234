#!/usr/bin/env python3
"""
Run the turn evaluators over a single turn from the command line.

Usage:
    python scripts/run_extraction.py turn.json
    echo '{"turn": {...}, "state": {...}}' | python scripts/run_extraction.py

Input document:
    {
      "turn": {"text": "...", "room_id": "...", "entity_id": "...", "agent_id": "..."},
      "state": {"recent_messages": [{"role": "user", "text": "..."}],
                "action_results": [{"data": {"task_id": "..."}}]}
    }
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add app to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import config
from evaluators.factory import EvaluatorFactory
from evaluators.models import ConversationTurn, SessionState

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Extract memories from one conversation turn")
    parser.add_argument(
        "input",
        nargs="?",
        help="Path to a JSON document with 'turn' and 'state' (default: stdin)"
    )
    parser.add_argument(
        "--log-level",
        default=config.system.log_level,
        help=f"Logging level (default: {config.system.log_level})"
    )
    parser.add_argument(
        "--only",
        action="append",
        metavar="EVALUATOR",
        help="Run only the named evaluator (e.g. LESSON_EXTRACTOR); may be repeated"
    )
    return parser.parse_args(argv)


def load_document(path) -> dict:
    if path:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    return json.load(sys.stdin)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )

    try:
        document = load_document(args.input)
    except (OSError, json.JSONDecodeError) as e:
        print(f"✗ Could not read input: {e}", file=sys.stderr)
        return 1

    if not isinstance(document, dict) or not isinstance(document.get("turn"), dict):
        print("✗ Input must be a JSON object with a 'turn' object", file=sys.stderr)
        return 1

    turn = ConversationTurn.from_mapping(document["turn"])
    state = SessionState.from_mapping(document.get("state"))

    try:
        factory = EvaluatorFactory(config)
    except (ValueError, FileNotFoundError) as e:
        print(f"✗ Could not initialize evaluators: {e}", file=sys.stderr)
        return 1

    try:
        if args.only:
            factory.evaluators = [e for e in factory.evaluators if e.name in args.only]
        results = factory.evaluate_turn(turn, state)
    finally:
        factory.cleanup()

    output = {name: result.to_dict() for name, result in results.items()}
    print(json.dumps(output, indent=config.system.json_indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
