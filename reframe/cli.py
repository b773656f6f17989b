#!/usr/bin/env python3
"""
Terminal run of the three-stage reflection exercise.

Usage:
    python -m reframe.cli --experience "Moving to a new city"
    python -m reframe.cli --resume session.json --export session.json

Environment Variables:
    OPENAI_API_KEY: OpenAI chat models (recommended)
    REFRAME_CHAT_URL: Use a running chat endpoint instead (with --remote)

If no API key is set, falls back to Ollama (local, requires `ollama serve`)
"""

import argparse
import json
import sys
from pathlib import Path

from .agents import (
    ChallengeBiasesWorkflow,
    DefineExperienceWorkflow,
    GenerateIdeasWorkflow,
    HttpChatClient,
    LocalChatBackend,
)
from .config import MAX_EXPERIENCE_CHARS
from .errors import ReframeError, SessionImportError
from .schemas.session import BiasDecision
from .state import SessionState


def _ask(prompt: str = "\n> ") -> str:
    """Read one line; 'done' on interrupt or end of input."""
    try:
        return input(prompt).strip()
    except (KeyboardInterrupt, EOFError):
        print()
        return "done"


def _attempt(action, *args):
    """Run a request; report a failure and carry on."""
    try:
        return action(*args)
    except ReframeError as e:
        print(f"  Error: {e}")
        return None


def _pick(items: list, arg: str):
    """Item by 1-based number, or None."""
    if arg.isdigit() and 1 <= int(arg) <= len(items):
        return items[int(arg) - 1]
    print("  Unknown number.")
    return None


# ── Stage 1 ─────────────────────────────────────────────────────

def run_define_experience(workflow: DefineExperienceWorkflow):
    state = workflow.state
    print(f"\n{'─'*50}")
    print("Stage 1: Define the experience")
    print(f"{'─'*50}")
    print("Commands: 'summary' to summarize now, 'done' to move on\n")

    if state.is_finished:
        print(f"Summary: {state.summary}")
        return

    if not state.history:
        message = _attempt(workflow.start)
        if message:
            print(f"\n{message.content}")
    else:
        print(f"\n{state.history[-1].content}")

    while not state.is_finished:
        text = _ask()
        if text.lower() == "done":
            return
        if text.lower() == "summary":
            summary = _attempt(workflow.force_summary)
            if summary:
                print(f"\nSummary: {summary}")
            continue
        if not text:
            continue
        message = _attempt(workflow.send, text)
        if message:
            print(f"\n{message.content}")

    print(f"\nSummary: {state.summary}")


# ── Stage 2 ─────────────────────────────────────────────────────

def _show_ideas(state: SessionState):
    print("\nMy ideas:")
    for i, (idea, origin) in enumerate(state.ideas.classified_ideas(), 1):
        note = f"  ({state.ideas.comment(idea)})" if state.ideas.has_comment(idea) else ""
        print(f"  {i}. [{origin.value}] {idea}{note}")
    suggestions = state.ideas.available_suggestions()
    if suggestions:
        print("Suggestions:")
        for i, idea in enumerate(suggestions, 1):
            print(f"  {i}. {idea}")


def run_generate_ideas(workflow: GenerateIdeasWorkflow):
    state = workflow.state
    print(f"\n{'─'*50}")
    print("Stage 2: Generate ideas")
    print(f"{'─'*50}")
    print("Commands: 'more', 'add <idea>', 'pick <n>', 'remove <n>',")
    print("          'comment <n> <text>', 'list', 'done'\n")

    if not state.ideas.suggested_ideas:
        added = _attempt(workflow.generate)
        print(f"  {len(added or [])} new ideas")
    _show_ideas(state)

    while True:
        command, _, arg = _ask().partition(" ")
        command = command.lower()
        if command == "done":
            return
        if command == "more":
            added = _attempt(workflow.generate)
            print(f"  {len(added or [])} new ideas")
            _show_ideas(state)
        elif command == "add":
            state.ideas.add(arg)
        elif command == "pick":
            idea = _pick(state.ideas.available_suggestions(), arg)
            if idea:
                state.ideas.adopt(idea)
        elif command == "remove":
            idea = _pick(state.ideas.my_ideas, arg)
            if idea:
                state.ideas.remove(idea)
        elif command == "comment":
            number, _, text = arg.partition(" ")
            idea = _pick(state.ideas.my_ideas, number)
            if idea:
                state.ideas.set_comment(idea, text)
        elif command == "list":
            _show_ideas(state)


# ── Stage 3 ─────────────────────────────────────────────────────

def _show_biases(state: SessionState):
    biases = state.biases
    if not biases:
        print("\nNo analysis yet.")
        return
    print(f"\nAnalysis {state.analyses.active_index + 1} of {len(state.analyses)}")
    for i, bias in enumerate(biases, 1):
        decision = state.feedback.decision(bias.id)
        mark = f" [{decision.value}]" if decision else ""
        print(f"\n  {i}. {bias.title}{mark}")
        print(f"     {bias.explanation}")
        for idea in bias.challenging_ideas:
            chosen = "x" if idea in state.ideas.my_ideas else " "
            print(f"     [{chosen}] {idea}")
        for idea in state.ideas.ideas_for_bias(bias.id):
            print(f"     [+] {idea}")


def run_challenge_biases(workflow: ChallengeBiasesWorkflow):
    state = workflow.state
    print(f"\n{'─'*50}")
    print("Stage 3: Challenge biases")
    print(f"{'─'*50}")
    print("Commands: 'analyze', 'accept <n>', 'reject <n>', 'clear <n>',")
    print("          'toggle <n> <k>', 'idea <n> <text>', 'comment <n> <text>',")
    print("          'show <analysis>', 'done'\n")

    if not len(state.analyses):
        _attempt(workflow.analyze)
    _show_biases(state)

    while True:
        command, _, arg = _ask().partition(" ")
        command = command.lower()
        number, _, rest = arg.partition(" ")
        if command == "done":
            return
        if command == "analyze":
            _attempt(workflow.analyze)
            _show_biases(state)
            continue
        if command == "show":
            if number.isdigit() and 1 <= int(number) <= len(state.analyses):
                workflow.select(int(number) - 1)
                _show_biases(state)
            continue

        bias = _pick(state.biases or [], number) if command in (
            "accept", "reject", "clear", "toggle", "idea", "comment"
        ) else None
        if bias is None:
            continue
        if command == "accept":
            state.feedback.decide(bias.id, BiasDecision.ACCEPTED)
        elif command == "reject":
            state.feedback.decide(bias.id, BiasDecision.REJECTED)
        elif command == "clear":
            state.feedback.decide(bias.id, None)
        elif command == "toggle":
            idea = _pick(list(bias.challenging_ideas), rest)
            if idea:
                state.ideas.toggle(idea)
        elif command == "idea":
            state.ideas.add_bias_idea(bias.id, rest)
        elif command == "comment":
            state.feedback.set_comment(bias.id, rest)


# ── Main ────────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(
        description="Guided reflection: define an experience, generate ideas, challenge biases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # New session
    python -m reframe.cli --experience "Starting a new job"

    # Continue a saved session and save it again on exit
    python -m reframe.cli --resume session.json --export session.json

LLM Providers:
    - OpenAI: Set OPENAI_API_KEY
    - Ollama: Run locally with `ollama serve` (no API key needed)
        """
    )
    parser.add_argument(
        "--experience", "-e",
        help=f"The experience to reflect on (at most {MAX_EXPERIENCE_CHARS} characters)"
    )
    parser.add_argument(
        "--resume", "-r",
        help="Session file to continue"
    )
    parser.add_argument(
        "--export", "-o",
        help="Write the session to this file on exit"
    )
    parser.add_argument(
        "--remote",
        action="store_true",
        help="Send requests to REFRAME_CHAT_URL instead of calling models directly"
    )

    args = parser.parse_args()

    state = SessionState()
    if args.resume:
        try:
            state.import_snapshot(json.loads(Path(args.resume).read_text()))
        except (OSError, ValueError, SessionImportError) as e:
            print(f"Could not load {args.resume}: {e}")
            sys.exit(1)
    if args.experience:
        state.set_experience(args.experience.strip())

    if not state.experience:
        state.set_experience(_ask("What experience would you like to reflect on?\n> "))
    if not state.experience or state.experience == "done":
        print("No experience given.")
        sys.exit(1)
    if len(state.experience) > MAX_EXPERIENCE_CHARS:
        print(f"Experience must be at most {MAX_EXPERIENCE_CHARS} characters.")
        sys.exit(1)

    backend = HttpChatClient() if args.remote else LocalChatBackend()

    print(f"\n{'='*60}")
    print("Reframe")
    print(f"{'='*60}")
    print(f"Experience: {state.experience}")
    print(f"Backend: {'remote ' + backend.url if args.remote else 'local models'}")
    print(f"{'='*60}")

    stages = [
        (run_define_experience, DefineExperienceWorkflow(state, backend)),
        (run_generate_ideas, GenerateIdeasWorkflow(state, backend)),
        (run_challenge_biases, ChallengeBiasesWorkflow(state, backend)),
    ]
    try:
        for run_stage, workflow in stages:
            if run_stage is not run_define_experience and not state.summary:
                print("\nThe experience has no summary yet; finish stage 1 first.")
                break
            run_stage(workflow)
    except ReframeError as e:
        print(f"\nError: {e}")

    if args.export:
        Path(args.export).write_text(json.dumps(state.export_snapshot(), indent=2))
        print(f"\nSession saved to: {args.export}")


if __name__ == "__main__":
    main()
