#!/usr/bin/env python3
"""Replay a recorded session and print its accessibility report."""

import asyncio
import json
import sys
from pathlib import Path

from web_access_advisor import Config, ProgressChannel, configure_logging, run_session

DEMO_ACTIONS = [
    {"type": "navigate", "url": "https://httpbin.org/forms/post"},
    {"type": "fill", "selector": 'input[name="custname"]', "value": "Jane"},
    {"type": "fill", "selector": 'input[name="custname"]', "value": "Jane Doe"},
    {"type": "click", "selector": 'input[name="size"][value="medium"]'},
    {"type": "key", "value": "Tab"},
]


async def main():
    """Run the demo session, or a JSON action file given on the command line."""
    config = Config.load()
    configure_logging(config.logging.level, config.logging.json_format)

    actions = DEMO_ACTIONS
    if len(sys.argv) > 1:
        actions = json.loads(Path(sys.argv[1]).read_text())

    progress = ProgressChannel()
    task = asyncio.create_task(run_session(actions, config, progress=progress))

    async for event in progress:
        counter = f" [{event.step}/{event.total}]" if event.step and event.total else ""
        print(f"{event.phase.value:>10}{counter} {event.message}")

    result = await task
    if not result.success:
        print(f"Session failed: {result.error}")
        return

    print(f"\nSession {result.session_id}: {result.snapshot_count} snapshots")
    for warning in result.warnings:
        print(f"  warning: {warning}")

    print("\nScan violations:")
    for violation in result.violations:
        steps = ", ".join(str(s) for s in violation.step_occurrences)
        print(f"  [{violation.impact or 'unknown'}] {violation.id} (steps {steps})")
        print(f"      {violation.recommendation}")

    if result.analysis:
        print(f"\nComponent findings (score {result.analysis.score}):")
        for component in result.analysis.components:
            print(f"  [{component.impact}] {component.component_name}: {component.issue} (step {component.step})")


if __name__ == "__main__":
    asyncio.run(main())
