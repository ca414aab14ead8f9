#!/usr/bin/env python
"""Close requests that have stayed COMPLETED past the grace period.

Usage:
    python backend/scripts/auto_close_requests.py              # uses AUTO_CLOSE_DAYS (default 3)
    python backend/scripts/auto_close_requests.py --days 7
    python backend/scripts/auto_close_requests.py --dry-run    # list candidates only (no DB changes)

Meant for cron; each closed request gets a status-history row with reason
"Automatically closed after N days".
"""
from __future__ import annotations
import os, sys, argparse, logging

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from maintdesk import create_app, get_db  # type: ignore
from maintdesk.services import notifications
from maintdesk.services.lifecycle import auto_close_candidates, auto_close_completed


def parse_args():
    p = argparse.ArgumentParser(description="Auto-close completed maintenance requests")
    p.add_argument('--days', type=int, default=None, help='Grace period in days (default: AUTO_CLOSE_DAYS)')
    p.add_argument('--actor-id', type=int, default=None, help='User id recorded as changed_by (default: system, empty)')
    p.add_argument('--dry-run', action='store_true', help='Only list requests that would be closed')
    return p.parse_args()


def main():
    args = parse_args()
    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO'), format='%(asctime)s %(levelname)s %(name)s %(message)s')
    app = create_app()
    days = args.days if args.days is not None else app.config['AUTO_CLOSE_DAYS']
    with app.app_context():
        session = get_db()
        if args.dry_run:
            rows = auto_close_candidates(days, session=session)
            print(f"[DRY-RUN] Requests that would close (>= {days} days completed): {len(rows)}")
            for r in rows:
                print(f"  {r.custom_identifier}  completed {r.completed_date.isoformat() if r.completed_date else '-'}")
            session.rollback()
            return
        closed = auto_close_completed(days, args.actor_id, session=session)
        print(f"[DONE] Requests closed: {closed}")
    # let queued notifications flush before the process exits
    notifications.drain(timeout=10)
    notifications.shutdown()


if __name__ == '__main__':
    main()
