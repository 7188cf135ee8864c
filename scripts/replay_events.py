#!/usr/bin/env python3
"""
Event Replay Script

Runs captured raw events through the pipeline and prints the resulting
task ranking. Useful for checking triage behavior against a recorded day
of webhooks.

Input is JSON Lines, one raw event per line:
    {"source": "slack", "payload": {...}}

Usage:
    python scripts/replay_events.py events.jsonl [--heuristics-only] [--limit 10]
"""

import sys
import json
import asyncio
import argparse
import logging
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def load_events(path: Path):
    events = []
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(json.loads(line))
            except json.JSONDecodeError as e:
                print(f"[Replay] Skipping line {lineno}: {e}")
    return events


async def replay(orchestrator, events):
    from hub.common.errors import RejectedEventError

    for raw in events:
        try:
            result = await orchestrator.run_pipeline(raw)
        except RejectedEventError as e:
            print(f"[Replay] Rejected: {e}")
            continue

        print(
            f"[Replay] {result.event.source.value}/{result.event.kind}: "
            f"tier={result.triage_tier} urgency={result.triage_result.urgency} "
            f"tasks={len(result.tasks)} errors={len(result.errors)}"
        )


def main():
    parser = argparse.ArgumentParser(description="Replay recorded events through the triage pipeline")
    parser.add_argument("events_file", type=Path, help="JSON Lines file of raw events")
    parser.add_argument("--heuristics-only", action="store_true", help="Skip reasoning backends")
    parser.add_argument("--limit", type=int, default=10, help="Number of ranked tasks to print")
    parser.add_argument("--verbose", action="store_true", help="Log pipeline stages")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from hub.common.config import load_config
    from hub.common.schemas import render_task_line
    from hub.pipeline import build_orchestrator
    from hub.triage import TriageEngine

    if not args.events_file.exists():
        print(f"[Replay] ERROR: {args.events_file} not found")
        sys.exit(1)

    events = load_events(args.events_file)
    print(f"[Replay] Loaded {len(events)} events")

    config = load_config()
    orchestrator = build_orchestrator(config)
    if args.heuristics_only:
        orchestrator.triage_engine = TriageEngine([])

    asyncio.run(replay(orchestrator, events))

    print(f"\n[Replay] Top {args.limit} tasks:")
    for task in orchestrator.rank_tasks(args.limit):
        print(f"  {render_task_line(task)}")

    stats = orchestrator.stats()["tasks"]
    print(
        f"\n[Replay] {stats['total']} tasks "
        f"({stats['pending']} pending, {stats['high_urgency_pending']} high urgency)"
    )


if __name__ == "__main__":
    main()
