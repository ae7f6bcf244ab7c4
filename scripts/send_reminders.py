"""
Run the daily reminder sweep outside the HTTP cron endpoint.

Usage:
  python scripts/send_reminders.py
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    from app.safework import create_app
    from app.safework.db import session_scope
    from app.safework.modules.reminders.service import run_reminders

    app = create_app()
    with app.app_context(), session_scope(app) as s:
        result = run_reminders(s, app.config)
    print(json.dumps({k: result[k] for k in ("timestamp", "sent", "errors")}), flush=True)
    if result["errors"]:
        sys.exit(1)


if __name__ == "__main__":
    main()
