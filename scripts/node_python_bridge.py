from __future__ import annotations

import json
from pathlib import Path
import sys
from urllib.parse import urlencode


def _read_payload() -> dict:
    raw = sys.stdin.read().strip()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            return data
        return {}
    except json.JSONDecodeError:
        return {}


def _emit(status_code: int, payload: dict) -> None:
    print(json.dumps({"status": status_code, "json": payload}, ensure_ascii=False))


def main() -> int:
    if len(sys.argv) < 2:
        print("missing action", file=sys.stderr)
        return 2

    action = sys.argv[1]
    payload = _read_payload()

    workspace_root = Path(__file__).resolve().parent.parent
    if str(workspace_root) not in sys.path:
        sys.path.insert(0, str(workspace_root))

    from house_calendar.config import load_settings
    from house_calendar.web_app import create_app

    settings = load_settings()
    app = create_app(settings.data_dir, holiday_country=settings.holiday_country)
    client = app.test_client()

    if action == "list":
        response = client.get("/api/reservations")
    elif action == "create":
        response = client.post("/api/reservations", json=payload)
    elif action == "update":
        response = client.put("/api/reservations", json=payload)
    elif action == "delete":
        response = client.delete("/api/reservations", json=payload)
    elif action == "check":
        response = client.post("/api/reservations/check", json=payload)
    elif action == "calendar":
        query = {key: payload[key] for key in ("year", "month") if key in payload}
        response = client.get(f"/api/calendar?{urlencode(query)}")
    else:
        print(f"unsupported action: {action}", file=sys.stderr)
        return 2

    _emit(response.status_code, response.get_json() or {})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
