#!/usr/bin/env python3
"""
Verse Alarm - Wake-up alarms dismissed by retyping a Bible passage.

Usage:
    python main.py --add 06:30 --repeat mon,wed   # Create an alarm
    python main.py --list                         # Show alarms
    python main.py --run                          # Run the alarm scheduler
    python main.py --preview                      # Fetch and show a passage
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from dotenv import load_dotenv

from versealarm.bible import BibleApiClient
from versealarm.config import Config
from versealarm.errors import VerseAlarmError
from versealarm.lifecycle import AlarmLifecycle, RingingPhase
from versealarm.models import new_alarm, parse_days
from versealarm.output import TerminalAlarmOutput
from versealarm.passages import PassageProvider
from versealarm.storage import JsonAlarmStore, JsonSettingsStore
from versealarm.triggers import AsyncioTriggerScheduler
from versealarm.verification import InputResult

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Verse Alarm - type a Bible passage to dismiss your alarm",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py --add 06:30 --label Work --repeat mon,tue,wed,thu,fri
    python main.py --disable 1700000000000-abc123def
    python main.py --famous on
    python main.py --books GEN,PSA,PRO
    python main.py --run
        """,
    )
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("--add", metavar="HH:MM", help="Create an alarm")
    action.add_argument("--list", action="store_true", help="List alarms")
    action.add_argument("--delete", metavar="ID", help="Delete an alarm")
    action.add_argument("--enable", metavar="ID", help="Enable an alarm")
    action.add_argument("--disable", metavar="ID", help="Disable an alarm")
    action.add_argument(
        "--famous", choices=["on", "off"], help="Use famous passages only"
    )
    action.add_argument(
        "--books", metavar="CODES", help="Comma separated book codes, or 'all'"
    )
    action.add_argument(
        "--preview", action="store_true", help="Fetch a passage without ringing"
    )
    action.add_argument("--run", action="store_true", help="Run the alarm scheduler")

    parser.add_argument("--label", default="", help="Alarm label")
    parser.add_argument(
        "--repeat", default="", help="Repeat days, e.g. mon,wed (default: once)"
    )
    parser.add_argument("--sound", default="default", help="Alarm sound id")
    parser.add_argument(
        "--no-vibrate", action="store_true", help="Do not vibrate when ringing"
    )
    parser.add_argument("--no-snooze", action="store_true", help="Disable snooze")
    parser.add_argument(
        "--snooze-minutes", type=int, default=5, help="Snooze duration in minutes"
    )
    return parser.parse_args(argv)


class App:
    """Wires stores, triggers, output and passages into the lifecycle."""

    def __init__(self, config: Config):
        self.config = config
        self.client = BibleApiClient(config)
        state_dir = config.resolved_state_dir
        self.alarms = JsonAlarmStore(state_dir)
        self.settings = JsonSettingsStore(
            state_dir, lambda: [b.usfm for b in self.client.catalog]
        )
        self.passages = PassageProvider(self.settings, self.client)

    def build_lifecycle(self) -> tuple[AlarmLifecycle, AsyncioTriggerScheduler]:
        triggers = AsyncioTriggerScheduler()
        lifecycle = AlarmLifecycle(
            store=self.alarms,
            triggers=triggers,
            output=TerminalAlarmOutput(),
            passages=self.passages,
        )
        triggers.handler = lifecycle.handle
        return lifecycle, triggers


def list_alarms(app: App) -> None:
    alarms = app.alarms.get_all()
    if not alarms:
        print("No alarms.")
        return
    for alarm in sorted(alarms, key=lambda a: a.time_of_day):
        status = "on " if alarm.enabled else "off"
        snooze = f"snooze {alarm.snooze_duration_minutes}m" if alarm.snooze_enabled else "no snooze"
        print(
            f"[{status}] {alarm.time_of_day.strftime('%H:%M')}  {alarm.repeat_label:<20} "
            f"{snooze:<12} {alarm.label}  ({alarm.id})"
        )


async def edit_alarms(app: App, args: argparse.Namespace) -> None:
    """Apply an add/delete/enable/disable edit through the lifecycle."""
    lifecycle, triggers = app.build_lifecycle()
    try:
        if args.add:
            alarm = new_alarm(
                datetime.strptime(args.add, "%H:%M").time(),
                label=args.label,
                repeat_days=parse_days(args.repeat),
                sound=args.sound,
                vibrate=not args.no_vibrate,
                snooze_enabled=not args.no_snooze,
                snooze_duration_minutes=args.snooze_minutes,
            )
            instant = await lifecycle.save(alarm)
            print(f"Alarm {alarm.id} set for {instant:%a %Y-%m-%d %H:%M}")
        elif args.delete:
            await lifecycle.delete(args.delete)
            print(f"Deleted {args.delete}")
        elif args.enable:
            instant = await lifecycle.toggle(args.enable, True)
            print(f"Enabled {args.enable}, next ring {instant:%a %Y-%m-%d %H:%M}")
        elif args.disable:
            await lifecycle.toggle(args.disable, False)
            print(f"Disabled {args.disable}")
    finally:
        triggers.cancel_all()


def preview_passage(app: App) -> None:
    """Preview a passage without ringing."""
    passage = app.passages.get_passage()
    print(f"\n{'=' * 60}")
    print(passage.source_label)
    print("=" * 60)
    print(passage.text)
    print(f"\nLength: {passage.length} characters")


async def wait_for_challenge(lifecycle: AlarmLifecycle, alarm_id: str) -> None:
    episode = lifecycle.episode(alarm_id)
    if episode and episode.passage_task:
        print("Loading challenge...")
        await asyncio.shield(episode.passage_task)


async def ring_interactively(lifecycle: AlarmLifecycle, alarm_id: str) -> None:
    """Run the typing challenge for a ringing alarm on the terminal."""
    await wait_for_challenge(lifecycle, alarm_id)
    episode = lifecycle.episode(alarm_id)
    if episode is None or episode.phase is not RingingPhase.CHALLENGE:
        return

    session = episode.session
    print(f"\n*** {episode.alarm.time_of_day:%H:%M} {episode.alarm.label} ***")
    print("Type to dismiss alarm")
    print(episode.passage.source_label)
    print(f"\n{episode.passage.text}\n")
    if episode.alarm.snooze_enabled:
        print(f"(enter 's' alone to snooze {episode.alarm.snooze_duration_minutes} minutes)")

    while True:
        line = await asyncio.to_thread(input, f"[{session.typed_prefix}] > ")
        try:
            if session.completed:
                await lifecycle.dismiss(alarm_id)
                result = InputResult.COMPLETED
            elif line == "s" and episode.alarm.snooze_enabled and not session.typed_prefix:
                instant = await lifecycle.snooze(alarm_id)
                print(f"Snoozed until {instant:%H:%M}")
                return
            else:
                result = await lifecycle.type_characters(alarm_id, line)
        except VerseAlarmError as e:
            # The alarm keeps ringing; let the user try again
            logger.error(f"Alarm {alarm_id} operation failed: {e}")
            print(f"Error: {e}", file=sys.stderr)
            if session.completed:
                print("Press Enter to retry dismissing.")
            continue
        print(
            f"Progress {session.progress_percent}%  "
            f"Accuracy {session.accuracy_percent}%  "
            f"Mistakes {session.mistake_count}"
        )
        if result is InputResult.COMPLETED:
            print("Alarm dismissed. Good morning!")
            return
        if result is InputResult.IGNORED and lifecycle.episode(alarm_id) is None:
            return


async def run_scheduler(app: App) -> None:
    """Run alarms until interrupted."""
    lifecycle, triggers = app.build_lifecycle()
    rung: asyncio.Queue[str] = asyncio.Queue()
    handle = lifecycle.handle

    async def on_trigger(message):
        episode = await handle(message)
        if episode:
            await rung.put(episode.alarm.id)
        return episode

    triggers.handler = on_trigger
    await lifecycle.restore()
    for trigger_id, instant in sorted(triggers.pending().items(), key=lambda i: i[1]):
        logger.info(f"Next ring for {trigger_id}: {instant:%a %Y-%m-%d %H:%M}")
    print("Alarm scheduler running. Press Ctrl+C to stop.")

    try:
        while True:
            alarm_id = await rung.get()
            await ring_interactively(lifecycle, alarm_id)
    finally:
        triggers.cancel_all()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()

    args = parse_args(argv)

    try:
        config = Config.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    config.setup_logging()
    app = App(config)

    try:
        if args.list:
            list_alarms(app)
        elif args.preview:
            preview_passage(app)
        elif args.famous:
            settings = app.settings.set_use_famous_source(args.famous == "on")
            print(f"Verse source: {settings.verse_source.value}")
        elif args.books:
            if args.books.strip().lower() == "all":
                codes = [b.usfm for b in app.client.catalog]
            else:
                codes = [c.strip().upper() for c in args.books.split(",") if c.strip()]
                unknown = [c for c in codes if app.client.get_book(c) is None]
                if unknown:
                    print(f"Unknown book codes: {', '.join(unknown)}", file=sys.stderr)
                    return 1
            settings = app.settings.set_selected_books(codes)
            print(
                f"Selected {len(settings.selected_book_ids)} books "
                f"(verse source: {settings.verse_source.value})"
            )
        elif args.run:
            asyncio.run(run_scheduler(app))
        else:
            asyncio.run(edit_alarms(app, args))
    except KeyboardInterrupt:
        logger.info("Stopped")
    except (ValueError, VerseAlarmError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
