# scripts/test/check_backend.py
"""
Smoke-test a running backend: health, dashboard snapshot, hourly stats and
recent events.
Usage: python scripts/test/check_backend.py
       python scripts/test/check_backend.py --url http://192.168.1.50:4000
"""

import sys
import os
import argparse
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

import requests
from app.config import settings


def check(url: str) -> dict:
    try:
        resp = requests.get(url, timeout=5)
        if resp.status_code == 200:
            return {"status": "✅ ok", "body": resp.json()}
        return {"status": f"❌ http_{resp.status_code}", "body": resp.text[:200]}
    except requests.exceptions.ConnectTimeout:
        return {"status": "❌ timeout", "hint": "Backend unreachable — check host and port"}
    except requests.exceptions.ConnectionError:
        return {"status": "❌ connection_refused", "hint": "Is uvicorn running?"}


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--url", default=f"http://localhost:{settings.BACKEND_PORT}")
    args = parser.parse_args()
    base = args.url.rstrip("/")

    print("🍜 Occupancy Backend Check")
    print("=" * 55)

    all_ok = True
    for name, path in [("Health", "/health"), ("Dashboard", "/api/dashboard"),
                       ("Hourly", "/api/stats/hourly"), ("Recent", "/api/events/recent?limit=5")]:
        result = check(base + path)
        print(f"\n[{name}] {path}")
        print(f"  Status   : {result['status']}")
        if not result["status"].startswith("✅"):
            all_ok = False
            if "hint" in result:
                print(f"  Hint     : {result['hint']}")
            continue

        body = result["body"]
        if name == "Health":
            print(f"  Database : {body.get('database')}")
            print(f"  MQTT     : {body.get('mqtt')}")
            if body.get("status") != "ok":
                all_ok = False
        elif name == "Dashboard":
            print(f"  Visitors : {body['currentVisitors']}/{body['maxCapacity']} ({body['status']})")
        elif name == "Hourly":
            busy = [h for h in body if h["entryCount"] or h["exitCount"]]
            print(f"  Hours    : {len(body)} rows, {len(busy)} with activity")
        else:
            print(f"  Events   : {len(body)}")

    print("\n" + "=" * 55)
    if all_ok:
        print("✅ Backend healthy.")
    else:
        print("⚠️  Some checks failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
