"""
Sweep worker — runs the notification dispatcher for a cron trigger.

Never runs inside a user's HTTP request cycle. Triggered by the internal
cron endpoint, scripts/run_notification_sweep.py, or a manual call.
"""
import logging
import time

logger = logging.getLogger(__name__)

# Maximum seconds per sweep before the batch is capped (serverless timeouts).
MAX_SWEEP_SECONDS = 45

# Items handled per batch inside one sweep.
SWEEP_BATCH_SIZE = 200


def run_sweep_cycle(max_seconds=MAX_SWEEP_SECONDS, batch_size=SWEEP_BATCH_SIZE):
    """Deliver due notifications in batches until none remain or time runs out.

    Args:
        max_seconds: Time budget for the whole cycle.
        batch_size: Items per dispatcher call.

    Returns:
        dict with processed, sent, failed, skipped, batches,
        elapsed_seconds, truncated and (on failure) error.
    """
    from core.notifications.dispatcher import process_pending_notifications

    start = time.monotonic()
    totals = {'processed': 0, 'sent': 0, 'failed': 0, 'skipped': 0, 'batches': 0}

    while True:
        try:
            result = process_pending_notifications(limit=batch_size)
        except Exception as e:
            logger.error("[notify] sweep cycle failed: %s", e)
            totals.update({
                'elapsed_seconds': round(time.monotonic() - start, 2),
                'truncated': False,
                'error': str(e),
            })
            return totals

        totals['batches'] += 1
        for key in ('processed', 'sent', 'failed', 'skipped'):
            totals[key] += result[key]

        if result['processed'] < batch_size:
            truncated = False
            break
        if time.monotonic() - start >= max_seconds - 2:
            truncated = True
            break

    totals.update({
        'elapsed_seconds': round(time.monotonic() - start, 2),
        'truncated': truncated,
    })
    return totals
