import signal
import time
from django.conf import settings
from django.core.management.base import BaseCommand

from mines.engine import get_engine
from mines.redis_lock import LockHeartbeat, LockLost, SchedulerLock


class Command(BaseCommand):
    help = "Run the mines round scheduler with a Redis single-instance lock"

    def add_arguments(self, parser):
        parser.add_argument(
            "--lock-ttl",
            type=int,
            default=settings.MINES_ENGINE_LOCK_TTL,
            help="Lock TTL in seconds",
        )
        parser.add_argument(
            "--heartbeat-interval",
            type=float,
            default=10,
            help="Heartbeat interval in seconds (default: 10)",
        )

    def handle(self, *args, **options):
        lock_ttl = options["lock_ttl"]
        heartbeat_interval = options["heartbeat_interval"]

        self.stdout.write(f"[ROUNDS] Starting with lock TTL: {lock_ttl}s, heartbeat: {heartbeat_interval}s")

        lock = SchedulerLock("mines:scheduler", lock_ttl)

        if not lock.acquire():
            self.stdout.write(
                self.style.WARNING("[ROUNDS] Another scheduler already running. Exiting.")
            )
            return

        self.stdout.write(self.style.SUCCESS("[ROUNDS] Lock acquired. Scheduler starting."))

        heartbeat = LockHeartbeat(lock, every_seconds=heartbeat_interval)
        scheduler = get_engine().scheduler

        running = True

        def shutdown(*_):
            nonlocal running
            running = False
            self.stdout.write(self.style.WARNING("[ROUNDS] Shutdown requested."))

        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)

        try:
            first = scheduler.start()
            self.stdout.write(self.style.SUCCESS(f"[ROUNDS] First round {first.round_id} started"))

            while running:
                heartbeat.tick()
                time.sleep(0.5)

        except LockLost:
            self.stdout.write(
                self.style.ERROR("[ROUNDS] Scheduler lock lost. Another instance may have taken over.")
            )

        finally:
            scheduler.stop(timeout=5)
            if lock.release():
                self.stdout.write(self.style.SUCCESS("[ROUNDS] Lock released. Scheduler stopped."))
