"""Cron entry point: recalculate weekly FCR without running the bot.

    python scripts/recalculate_fcr.py              # all active flocks
    python scripts/recalculate_fcr.py --flock-id 3
    python scripts/recalculate_fcr.py --env-file /etc/flockfund.env
"""
import argparse
import json
import logging
import os
import sys

# Add src to path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from dotenv import load_dotenv

import database
from fcr import handle_fcr_request

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Recalculate weekly FCR")
    parser.add_argument("--flock-id", default=None, help="Only this flock (default: all active flocks)")
    parser.add_argument("--env-file", default=None, help="Read DB_PATH and friends from this .env file")
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "INFO"))
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper())

    if args.env_file:
        load_dotenv(args.env_file, override=True)
    database.configure(os.getenv("DB_PATH", database.DB_PATH))

    db = next(database.get_db())
    try:
        response = handle_fcr_request(db, {"flock_id": args.flock_id})
    finally:
        db.close()

    print(json.dumps(response, indent=2))
    return 0 if response.get("success") else 1

if __name__ == "__main__":
    sys.exit(main())
