import argparse
import logging
import signal
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import List, Optional

from config import Config, load_config, setup_logging
from tea_alarms.errors import ErrorReporter
from tea_alarms.manager import AlarmStore
from tea_alarms.notifier import LocalNotificationCenter
from tea_alarms.planner import NOTIFICATION_CATEGORIES, TriggerKind, TriggerSpec, next_occurrence
from tea_alarms.storage import JsonAlarmStorage
from time_utils import format_tz_offset

logger = logging.getLogger("tea_alarm")


def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
    logger.info("Shutting down (signal %s)", signum)
    raise KeyboardInterrupt()


class TeaAlarmRuntime:
    def __init__(self, config: Config, executor: Optional[ThreadPoolExecutor] = None):
        self.config = config
        self.reporter = ErrorReporter(on_error=self._on_error)
        self.notification_center = LocalNotificationCenter(
            on_trigger=self._on_trigger,
            check_interval=max(0.2, config.notify_check_interval_ms / 1000.0),
        )
        self.notification_center.register_categories(NOTIFICATION_CATEGORIES)
        self.store = AlarmStore(
            notifier=self.notification_center,
            persistence=JsonAlarmStorage(config.alarms_path),
            reporter=self.reporter,
            executor=executor,
        )

    def start(self) -> None:
        self.store.load_from_persistence()
        self.notification_center.start()

    def shutdown(self) -> None:
        self.notification_center.shutdown()

    def _on_error(self, message: str) -> None:
        print(f"error: {message}")

    def _on_trigger(self, spec: TriggerSpec, fired_at: datetime) -> None:
        content = spec.content
        if spec.kind is TriggerKind.MAIN:
            print(f"[{fired_at:%H:%M}] {content.title} - {content.subtitle}: {content.body}")
        else:
            print(f"[{fired_at:%H:%M}] {content.title}: {content.body}")


def format_alarm_line(index: int, alarm, now: datetime) -> str:
    upcoming = next_occurrence(alarm, now)
    offset = format_tz_offset(alarm.tzinfo, now)
    when = upcoming.strftime("%a %d.%m %H:%M") if upcoming else "-"
    return (
        f"{index}) {alarm.time_of_day} {alarm.time_zone} (UTC{offset}) "
        f"[{alarm.describe_days()}] {alarm.label or '-'}  next: {when}  id={alarm.id}"
    )


def _parse_days(raw: Optional[str]) -> List[int]:
    if not raw:
        return []
    return [int(part) for part in raw.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tea-alarm", description="Recurring tea time alarms")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show alarms and their next main trigger")

    add = sub.add_parser("add", help="Add a weekly alarm")
    add.add_argument("time", help="Clock time, HH:MM")
    add.add_argument("--tz", default=None, help="IANA timezone (default from config)")
    add.add_argument("--days", default="", help="Weekdays 1=Sun..7=Sat, comma separated; empty means every day")
    add.add_argument("--label", default="")
    add.add_argument("--subtitle", default="")

    remove = sub.add_parser("remove", help="Remove an alarm by id or list position")
    remove.add_argument("target")

    sub.add_parser("run", help="Load alarms and fire notifications until interrupted")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    setup_logging(config.log_level, config.log_dir)

    if args.command == "run":
        signal.signal(signal.SIGINT, graceful_exit)
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="tea-alarm-io") as executor:
            runtime = TeaAlarmRuntime(config, executor=executor)
            runtime.start()
            logger.info("Tea alarm running with %s alarms", len(runtime.store))
            try:
                while True:
                    time.sleep(0.5)
            except KeyboardInterrupt:
                logger.info("Interrupted by user")
            finally:
                runtime.shutdown()
        return 0

    runtime = TeaAlarmRuntime(config)
    store = runtime.store
    store.load_from_persistence()
    now = datetime.now(timezone.utc)

    if args.command == "list":
        alarms = store.alarms
        if not alarms:
            print("No tea alarms yet.")
        for idx, alarm in enumerate(alarms, start=1):
            print(format_alarm_line(idx, alarm, now))
    elif args.command == "add":
        alarm = store.add(
            args.time,
            args.tz or config.default_timezone,
            label=args.label,
            subtitle=args.subtitle,
            repeat_days=_parse_days(args.days),
        )
        print(format_alarm_line(len(store), alarm, now))
    elif args.command == "remove":
        target = args.target
        removed = store.remove(int(target) - 1 if target.isdigit() else target)
        if removed is None:
            print(f"No alarm matches {target}.")
        else:
            print(f"Removed {removed.time_of_day} {removed.label or removed.id}.")
    return 1 if runtime.reporter.last_error else 0


if __name__ == "__main__":
    raise SystemExit(main())
