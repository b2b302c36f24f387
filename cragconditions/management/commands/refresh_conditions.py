"""Management command that runs the condition refresh scheduler."""
from __future__ import annotations

import json
import logging
import signal
import threading
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from cragconditions.core.errors import ConditionsError, UnknownLocation
from cragconditions.core.factory import get_condition_service

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Refresh climbing condition assessments on a timer, once, or for a single location"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--once", action="store_true", help="Run a single refresh cycle and print the results")
        parser.add_argument("--location", type=str, help="Force-refresh one location id and print it")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        service = get_condition_service()

        location_id = options.get("location")
        if location_id:
            try:
                assessment = service.force_refresh(location_id)
            except UnknownLocation as exc:
                raise CommandError(str(exc)) from exc
            except ConditionsError as exc:
                raise CommandError(f"Refresh failed for {location_id}: {exc}") from exc
            self.stdout.write(json.dumps(assessment.to_dict()))
            return

        if options.get("once"):
            report = service.scheduler.run_cycle()
            payload = {
                "cycle": report.as_dict(),
                "provider_errors": service.health(reset_provider_errors=True)["providers"],
                "assessments": [
                    service.get_assessment(location.id).as_dict() for location in service.scheduler.locations()
                ],
            }
            self.stdout.write(json.dumps(payload))
            if report.locations and report.failures == report.locations:
                raise CommandError("All locations failed to refresh")
            return

        self._run_forever(service)

    def _run_forever(self, service) -> None:
        stopped = threading.Event()

        def _handle_signal(signum, frame):
            logger.info("Received signal %s, shutting down", signum)
            stopped.set()

        signal.signal(signal.SIGINT, _handle_signal)
        signal.signal(signal.SIGTERM, _handle_signal)

        service.start()
        self.stdout.write(f"Refreshing {len(service.scheduler.locations())} locations every {service.scheduler.interval:.0f}s")
        try:
            while not stopped.wait(1.0):
                pass
        finally:
            service.stop()
