import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand
from django.utils import timezone

from queue_system.sweeps import detect_long_waits, perform_daily_reset
from queue_system.window import next_reset

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Run the long-wait detector and fire the daily reset at each reset boundary.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--interval',
            type=int,
            default=60,
            help='seconds between long-wait checks',
        )
        parser.add_argument('--once', action='store_true', help='run a single long-wait pass and exit')
        parser.add_argument('--no-long-wait', action='store_true', help='only fire daily resets')

    def handle(self, *args, **options):
        interval = options['interval']
        check_long_wait = not options['no_long_wait']

        if options['once']:
            alerts = detect_long_waits() if check_long_wait else []
            self.stdout.write(f'{len(alerts)} long-wait alerts raised')
            return

        reset_at = next_reset()
        self.stdout.write(f'Next daily reset at {timezone.localtime(reset_at)}')
        minutes = settings.QUEUE_ENGINE.get('LONG_WAIT_MINUTES', 10)
        self.stdout.write(f'Long-wait threshold {minutes} minutes, checked every {interval}s')

        try:
            while True:
                now = timezone.now()
                if now >= reset_at:
                    try:
                        perform_daily_reset(now)
                    except Exception:
                        logger.exception('Daily reset failed')
                    reset_at = next_reset(now)
                    self.stdout.write(f'Next daily reset at {timezone.localtime(reset_at)}')
                if check_long_wait:
                    try:
                        detect_long_waits(now)
                    except Exception:
                        logger.exception('Long-wait check failed')
                wait = min(interval, max(0.0, (reset_at - timezone.now()).total_seconds()))
                time.sleep(wait)
        except KeyboardInterrupt:
            pass
