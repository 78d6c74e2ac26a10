#!/usr/bin/env python3
"""
Simulate Session: run a monitored interview

Drives a MonitorSession with a presence source, injects a few scripted
behaviours, then writes the export. By default time is advanced by a
manual clock and presence comes from the randomized stand-in; with
--camera opencv frames are read from the local webcam instead, and
--realtime runs the clock and poller on an asyncio loop.

Usage:
    python scripts/simulate_session.py --duration 60 --seed 7
    python scripts/simulate_session.py --tab-hidden-at 10 --paste-at 20 --burst-at 30 --analyze
    python scripts/simulate_session.py --camera opencv --realtime --duration 30
"""
import argparse
import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from integrity_monitor.config import settings
from integrity_monitor.monitor.analysis import CodeReviewAnalyzer
from integrity_monitor.monitor.scheduler import AsyncioScheduler, ManualScheduler, TaskScheduler
from integrity_monitor.monitor.session import MonitorSession
from integrity_monitor.monitor.signals import (
    ClientReportedCamera,
    OpenCVCamera,
    OpenCVPresenceSource,
    RandomPresenceSource,
)
from integrity_monitor.utils.logging_config import setup_logging

logger = logging.getLogger("simulate_session")

SAMPLE_CODE = '''def two_sum(nums, target):
    seen = {}
    for i, n in enumerate(nums):
        if target - n in seen:
            return [seen[target - n], i]
        seen[n] = i
'''


def print_header(title: str):
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")


def parse_args():
    parser = argparse.ArgumentParser(description="Simulate a monitored interview session")
    parser.add_argument("--duration", type=int, default=60, help="Session length in seconds")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the presence stand-in")
    parser.add_argument("--camera", choices=["stub", "opencv"], default="stub",
                        help="stub: randomized presence; opencv: local webcam with Haar cascades")
    parser.add_argument("--device", type=int, default=0, help="Webcam index for --camera opencv")
    parser.add_argument("--realtime", action="store_true", help="Run the clock and poller on an asyncio loop")
    parser.add_argument("--no-camera", action="store_true", help="Simulate refused camera access")
    parser.add_argument("--tab-hidden-at", type=int, action="append", default=[], help="Hide the tab at second N")
    parser.add_argument("--paste-at", type=int, action="append", default=[], help="Paste the sample code at second N")
    parser.add_argument("--burst-at", type=int, action="append", default=[], help="Type a 40ms keystroke burst at second N")
    parser.add_argument("--analyze", action="store_true", help="Run the external code review before export")
    parser.add_argument("--output-dir", default=settings.EXPORT_DIR, help="Directory for the export file")
    return parser.parse_args()


def build_session(args, scheduler: TaskScheduler) -> MonitorSession:
    if args.camera == "opencv":
        camera = OpenCVCamera(device_index=args.device)
        presence_source = OpenCVPresenceSource()
    else:
        camera = ClientReportedCamera(granted=not args.no_camera, reason="Simulated denial")
        presence_source = RandomPresenceSource(seed=args.seed)

    return MonitorSession(
        candidate_id="simulated-candidate",
        camera=camera,
        presence_source=presence_source,
        scheduler=scheduler,
    )


def apply_actions(session: MonitorSession, second: int, args, typed: str) -> str:
    """Inject the behaviours scripted for this second; returns the editor text"""
    if second in args.tab_hidden_at:
        session.observe_visibility(False)
        session.observe_visibility(True)

    if second in args.paste_at:
        typed += SAMPLE_CODE
        session.update_artifact(typed)
        session.observe_paste(len(SAMPLE_CODE))

    if second in args.burst_at:
        base_ms = second * 1000.0
        for i, ch in enumerate("return result"):
            typed += ch
            session.observe_keystroke(base_ms + i * 40, typed)

    return typed


def run(args) -> MonitorSession:
    scheduler = ManualScheduler()
    session = build_session(args, scheduler)
    session.start()
    typed = ""

    for second in range(1, args.duration + 1):
        scheduler.advance(1)
        typed = apply_actions(session, second, args, typed)

    if args.analyze:
        print_header("Code review")
        verdict = asyncio.run(session.run_analysis(CodeReviewAnalyzer()))
        print(json.dumps(verdict.model_dump(), indent=2))

    session.stop()
    return session


async def run_realtime(args) -> MonitorSession:
    session = build_session(args, AsyncioScheduler())
    session.start()
    typed = ""

    try:
        for second in range(1, args.duration + 1):
            await asyncio.sleep(1)
            typed = apply_actions(session, second, args, typed)

        if args.analyze:
            print_header("Code review")
            verdict = await session.run_analysis(CodeReviewAnalyzer())
            print(json.dumps(verdict.model_dump(), indent=2))
    finally:
        session.stop()

    return session


def main():
    args = parse_args()
    setup_logging(service_name="simulate-session", level="INFO", log_to_file=False)

    print_header("Running simulated session")
    logger.info(
        f"duration={args.duration}s seed={args.seed} source={args.camera} "
        f"clock={'realtime' if args.realtime else 'manual'} camera={'denied' if args.no_camera else 'granted'}"
    )
    session = asyncio.run(run_realtime(args)) if args.realtime else run(args)

    print_header("Timeline")
    for event in session.events:
        print(f"  [{event.session_elapsed_seconds:>4}s] {event.severity.value:<6} {event.type.value}: {event.message}")

    breakdown = session.scorer.compute_breakdown(session.events)
    print_header(f"Score {session.score} - {session.scorer.get_band(session.score)}")
    print(json.dumps(breakdown["penalties"], indent=2))

    path = session.export().write(args.output_dir)
    print(f"\nExport written to {path}")


if __name__ == "__main__":
    main()
