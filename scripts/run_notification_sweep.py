"""
Deliver every due scheduled notification once, for hosts that run cron jobs
directly instead of calling the internal HTTP endpoint.

Usage:
    python scripts/run_notification_sweep.py [--max-seconds 45]
"""
import argparse
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from server import app
from core.notifications.sweep_worker import run_sweep_cycle


def main():
    parser = argparse.ArgumentParser(description='Deliver due scheduled notifications')
    parser.add_argument('--max-seconds', type=int,
                        default=app.config['NOTIFICATION_SWEEP_MAX_SECONDS'])
    args = parser.parse_args()

    with app.app_context():
        result = run_sweep_cycle(max_seconds=args.max_seconds)

    print(f"Processed {result['processed']} notification(s): "
          f"sent={result['sent']} failed={result['failed']} skipped={result['skipped']}")
    if result.get('error'):
        print(f"❌ Sweep failed: {result['error']}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
