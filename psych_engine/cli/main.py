"""
Main CLI entry point for Psych Engine

This module provides the command-line interface: simulate synthetic
sessions and print the resulting analytics, score a raw test payload, or
classify a single mental state.
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

import numpy as np

from ..core.config import EngineConfig, TEST_TYPES, ANALYTICS_WINDOWS
from ..core.data_types import MentalState
from ..core.errors import PsychEngineError
from ..communication.records import to_json
from ..detection.emotional_state import EmotionalStateClassifier
from ..processing.derivation import (
    attention_level, cognitive_load, consciousness_score, derive_brainwaves,
)
from ..scoring.scorers import score_test
from ..service import PsychologyEngine
from ..simulation.fake_data import simulate_session
from ..utils.log_setup import setup_logging


def run_simulation(args: argparse.Namespace) -> Any:
    """Run synthetic sessions through a fresh in-memory engine"""
    config = EngineConfig(seed=args.seed, default_window=args.window)
    engine = PsychologyEngine(config=config)

    sessions = []
    for _ in range(args.sessions):
        outcome = simulate_session(engine, n_updates=args.updates, run_tests=not args.no_tests,
                                   rng=engine.lifecycle.rng)
        sessions.append(outcome["session"])

    return {
        "sessions": sessions,
        "analytics": engine.get_analytics(args.window),
        "overview": engine.get_overview(),
    }


def run_scoring(args: argparse.Namespace) -> Any:
    """Score a JSON trial payload read from a file or stdin"""
    if args.input == "-":
        payload = json.load(sys.stdin)
    else:
        with open(args.input, "r", encoding="utf-8") as f:
            payload = json.load(f)

    score = score_test(args.type, payload)
    logging.info(f"Scored {args.type}: accuracy={score.accuracy:.1f} difficulty={score.difficulty}")
    return score


def run_classification(args: argparse.Namespace) -> Any:
    """Derive brainwaves, score and emotional state for one mental state"""
    state = MentalState(focus=args.focus, creativity=args.creativity,
                        stress=args.stress, energy=args.energy)
    waves = derive_brainwaves(state, np.random.default_rng(args.seed))
    rule_index, emotional_state = EmotionalStateClassifier().explain(state)

    return {
        "mentalState": state,
        "mentalBalance": state.mental_balance,
        "brainwaves": waves,
        "dominantBrainwave": waves.dominant,
        "consciousnessScore": consciousness_score(state, waves),
        "cognitiveLoad": cognitive_load(state),
        "attentionLevel": attention_level(state),
        "emotionalState": emotional_state,
        "matchedRule": rule_index,
    }


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog="psych-engine",
        description="Psych Engine - psychology state and scoring engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Simulate three sessions and print analytics for the last hour
  python -m psych_engine --simulate --sessions 3 --window 1h --seed 7

  # Score a reaction time payload
  echo '{"attempts": [220, 240, 260]}' | python -m psych_engine --score --type reaction_time

  # Classify a mental state
  python -m psych_engine --classify --focus 80 --creativity 60 --stress 20 --energy 70
        """
    )

    # Mode selection (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group(required=True)
    mode_group.add_argument("--simulate", action="store_true",
                            help="Run synthetic sessions and print analytics")
    mode_group.add_argument("--score", action="store_true",
                            help="Score a raw test payload")
    mode_group.add_argument("--classify", action="store_true",
                            help="Classify a single mental state")

    # Simulation options
    parser.add_argument("--sessions", type=int, default=1,
                        help="Number of sessions to simulate")
    parser.add_argument("--updates", type=int, default=5,
                        help="Mental state updates per simulated session")
    parser.add_argument("--no-tests", action="store_true",
                        help="Skip psychology tests in simulated sessions")
    parser.add_argument("--window", choices=sorted(ANALYTICS_WINDOWS), default="24h",
                        help="Analytics window for the simulation report")

    # Scoring options
    parser.add_argument("--type", choices=TEST_TYPES,
                        help="Test type of the payload (required with --score)")
    parser.add_argument("--input", default="-",
                        help="JSON payload file ('-' reads stdin)")

    # Classification options
    for name in ("focus", "creativity", "stress", "energy"):
        parser.add_argument(f"--{name}", type=float, default=50.0,
                            help=f"{name.title()} percentage for --classify")

    # Common options
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for reproducible output")
    parser.add_argument("--indent", type=int, default=2,
                        help="JSON indentation")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable debug logging")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if args.score and args.type is None:
        parser.error("--type is required with --score")
    if args.sessions < 1 or args.updates < 0:
        parser.error("--sessions must be >= 1 and --updates >= 0")

    try:
        if args.simulate:
            output = run_simulation(args)
        elif args.score:
            output = run_scoring(args)
        else:
            output = run_classification(args)

    except PsychEngineError as e:
        logging.error(f"{type(e).__name__}: {e}")
        return 1
    except (OSError, ValueError) as e:
        logging.error(f"Invalid input: {e}")
        return 1

    print(to_json(output, indent=args.indent))
    return 0


if __name__ == "__main__":
    sys.exit(main())
