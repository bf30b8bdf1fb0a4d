#!/usr/bin/env python3
"""
Operator utility: run one push notification processing pass.

Usage examples:
    # Drain up to the configured batch size (PUSH_BATCH_SIZE, default 100)
    python process_push_queue.py

    # Smaller batch, verbose logging
    python process_push_queue.py --batch-size 10 --log-level DEBUG

    # Use a service account file instead of FIREBASE_SERVICE_ACCOUNT
    python process_push_queue.py --credentials ./firebase_key.json

Environment:
    DATABASE_URL              - database connection string (required)
    FIREBASE_SERVICE_ACCOUNT  - service account JSON (or FIREBASE_SERVICE_ACCOUNT_PATH)

Exit status is 0 when the pass ran (even if some notifications failed) and
1 when the pass itself was aborted.
"""

import argparse
import json
import sys

from dotenv import load_dotenv


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Process pending push notifications")
    parser.add_argument("--batch-size", type=int, default=None, help="Max notifications this pass")
    parser.add_argument("--credentials", default=None, help="Path to a service account JSON file")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    args = parser.parse_args(argv)

    load_dotenv()

    from dreampush.core.logging_config import setup_logging
    from dreampush.db import SessionLocal
    from dreampush.exceptions import PushPipelineError
    from dreampush.services.credentials import load_service_account
    from dreampush.services.queue_processor import process_pending_notifications

    setup_logging(args.log_level)

    db = SessionLocal()
    try:
        account = load_service_account(path=args.credentials) if args.credentials else None
        result = process_pending_notifications(db, account=account, batch_size=args.batch_size)
    except PushPipelineError as e:
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1
    finally:
        db.close()

    print(json.dumps({"message": result.message, **result.model_dump()}))
    return 0


if __name__ == "__main__":
    sys.exit(main())
