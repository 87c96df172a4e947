#!/usr/bin/env python3
"""Watch Me Run — meets and race reminders service.

Launch: python3 run_server.py
Serves at http://0.0.0.0:8000 (or PORT env var)
"""

import logging

import uvicorn

from watch_me_run.config import HOST, MEETS_CSV_PATH, PORT
from watch_me_run.supabase_client import is_configured


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    print("=" * 60)
    print("  Watch Me Run")
    print("=" * 60)

    if not is_configured():
        print("\n  WARNING: SUPABASE_URL not set. Set environment variables:")
        print("    SUPABASE_URL, SUPABASE_SERVICE_KEY")
        print(f"  Meets will be read from {MEETS_CSV_PATH}; user data is unavailable.\n")

    print(f"Starting server on {HOST}:{PORT}")
    print(f"\n  API docs: http://{HOST}:{PORT}/api/v1/docs")
    print("  Press Ctrl+C to stop\n")

    from watch_me_run.app import create_app
    app = create_app()
    uvicorn.run(app, host=HOST, port=PORT, log_level="info")


if __name__ == "__main__":
    main()
