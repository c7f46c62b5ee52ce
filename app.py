# app.py
import hmac
import logging
import os
import sys
import threading
import time
from collections import defaultdict, deque
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from flask import Flask, abort, jsonify, request

import config
import github_service
import notifier
from reminders import (
    Provider,
    expand_to_records,
    filter_with_pending_reviewers,
    parse_identifier_map,
    render_message,
    teams_mentions,
)

# --- Initialization ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Scheduler for the recurring reminder, started by main()
scheduler = BackgroundScheduler()

# Rate limiting (sliding window of request timestamps per IP)
request_times = defaultdict(deque)
RATE_LIMIT_WINDOW = 60  # seconds
RATE_LIMIT_MAX_REQUESTS = 30
rate_limit_lock = threading.Lock()

# Held while a reminder is being sent; cron and on-demand runs never overlap
reminder_lock = threading.Lock()


# --- Security ---
def is_rate_limited(client_ip: str, now: Optional[float] = None) -> bool:
    """Allows at most RATE_LIMIT_MAX_REQUESTS per IP within RATE_LIMIT_WINDOW."""
    if now is None:
        now = time.monotonic()

    with rate_limit_lock:
        # Drop expired timestamps for every IP so idle clients do not pile up
        cutoff = now - RATE_LIMIT_WINDOW
        for ip in list(request_times):
            times = request_times[ip]
            while times and times[0] <= cutoff:
                times.popleft()
            if not times:
                del request_times[ip]

        times = request_times[client_ip]
        if len(times) >= RATE_LIMIT_MAX_REQUESTS:
            logger.warning(f"Rate limit exceeded for IP: {client_ip}")
            return True
        times.append(now)
        return False


def verify_trigger_token(token_header: str) -> bool:
    """Checks the X-Reminder-Token header against the configured secret."""
    if not token_header:
        logger.warning("No X-Reminder-Token header on request.")
        return False
    if not hmac.compare_digest(token_header.encode('utf-8'), config.REMINDER_TRIGGER_TOKEN.encode('utf-8')):
        logger.warning("Reminder token does not match.")
        return False
    return True


# --- Reminder Logic ---
def run_reminder() -> int:
    """Fetches open PRs and posts one reminder for all pending reviewers."""
    if not reminder_lock.acquire(blocking=False):
        logger.warning("A reminder run is already in progress. Skipping.")
        return 0
    try:
        return _send_pending_reminders()
    finally:
        reminder_lock.release()


def _send_pending_reminders() -> int:
    provider = Provider.parse(config.PROVIDER)
    pull_requests = github_service.fetch_open_pull_requests(config.GITHUB_REPOSITORY, config.GITHUB_TOKEN)

    pending = filter_with_pending_reviewers(pull_requests)
    if not pending:
        logger.info("No pull requests waiting for review. Nothing to send.")
        return 0

    records = expand_to_records(pending)
    identifier_map = parse_identifier_map(config.GITHUB_PROVIDER_MAP)
    message = render_message(records, identifier_map, provider)

    mentions = teams_mentions(records, identifier_map) if provider is Provider.MSTEAMS else None
    payload = notifier.build_payload(provider, message, channel=config.CHANNEL, mentions=mentions)

    if not notifier.send_notification(config.WEBHOOK_URL, provider, payload):
        return 0
    logger.info(f"Reminded {len(records)} reviewers on {len(pending)} pull requests")
    return len(records)


def schedule_reminder():
    """Registers the recurring reminder job."""
    scheduler.add_job(
        run_reminder,
        'cron',
        day_of_week=config.REMINDER_DAYS,
        hour=config.REMINDER_HOUR,
        minute=config.REMINDER_MINUTE,
        id='review_reminder',
        max_instances=1,
        replace_existing=True
    )
    logger.info(
        f"Scheduled review reminder on {config.REMINDER_DAYS} at "
        f"{config.REMINDER_HOUR:02d}:{config.REMINDER_MINUTE:02d}"
    )


# --- HTTP Handlers ---
@app.route('/health', methods=['GET'])
def health():
    return jsonify(status='ok'), 200


@app.route('/remind', methods=['POST'])
def remind():
    client_ip = request.remote_addr

    # 1. Rate limiting
    if is_rate_limited(client_ip):
        abort(429, 'Rate limit exceeded')

    # 2. On-demand runs are disabled without a shared secret
    if not config.REMINDER_TRIGGER_TOKEN:
        logger.warning(f"Rejected /remind from {client_ip}: REMINDER_TRIGGER_TOKEN not set")
        abort(403, 'On-demand reminders are disabled.')

    # 3. Verify the token
    if not verify_trigger_token(request.headers.get('X-Reminder-Token')):
        logger.warning(f"Invalid reminder token from {client_ip}")
        abort(401, 'Invalid token.')

    try:
        notified = run_reminder()
    except ValueError as e:
        logger.error(f"Invalid reminder configuration: {e}")
        abort(500, 'Invalid configuration')

    return jsonify(notified=notified), 200


def main():
    logger.info("Starting Pull Request Reviews Reminder...")

    missing_vars = [name for name in config.REQUIRED_SETTINGS if not getattr(config, name)]
    if missing_vars:
        logger.error(f"Missing required environment variables: {', '.join(missing_vars)}")
        sys.exit(1)

    try:
        github_service.validate_repository(config.GITHUB_REPOSITORY)
    except ValueError as e:
        logger.error(f"Invalid GITHUB_REPOSITORY: {e}")
        sys.exit(1)

    schedule_reminder()
    scheduler.start()

    port = int(os.environ.get('PORT', 5000))
    debug_mode = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    if debug_mode:
        logger.warning("Running in debug mode - DO NOT USE IN PRODUCTION")

    # the reloader would start a second scheduler
    app.run(host='0.0.0.0', port=port, debug=debug_mode, use_reloader=False)


if __name__ == '__main__':
    main()
