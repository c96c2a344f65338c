# scripts/simulate_discharge.py
"""Walk a running console through a bulk discharge: select, verify, submit."""

import argparse
import sys
import requests

CONSOLE_URL = "http://localhost:8080/api/v1"


def call(method, path, api_key=None, **kw):
    headers = {"X-API-Key": api_key} if api_key else {}
    resp = requests.request(method, f"{CONSOLE_URL}{path}", headers=headers, timeout=90, **kw)
    body = resp.json()
    if resp.status_code >= 400:
        print(f"❌ {method} {path} → HTTP {resp.status_code}: {body}")
        if resp.status_code == 409 and "conflicts" in body:
            return resp.status_code, body
        sys.exit(1)
    return resp.status_code, body


def simulate(vehicle_numbers, mode, api_key, override):
    _, opened = call("POST", "/discharge/sessions", api_key, json={"filters": {}})
    sid = opened["session_id"]
    vehicles = opened["state"]["vehicles"]
    print(f"✅ Session {sid[:8]}: {len(vehicles)} parked vehicle(s)")

    wanted = [v for v in vehicles if not vehicle_numbers or v["vehicle_number"] in vehicle_numbers]
    if not wanted:
        print("⚠️  Nothing to discharge")
        return
    for v in wanted:
        call("POST", f"/discharge/sessions/{sid}/selection/{v['id']}/toggle", api_key)
    print(f"✅ Selected {[v['vehicle_number'] for v in wanted]}")

    _, state = call("PUT", f"/discharge/sessions/{sid}/mode", api_key, json={"mode": mode})
    if mode == "otp":
        call("POST", f"/discharge/sessions/{sid}/otp/send", api_key)
        code = input(f"📱 OTP sent to {wanted[0]['mobile_number']}, enter code: ").strip()
        _, state = call("POST", f"/discharge/sessions/{sid}/otp/verify", api_key, json={"code": code})
    elif mode == "image":
        _, state = call("POST", f"/discharge/sessions/{sid}/image/verify", api_key)
    print(f"✅ Verification: {state['verification']}")

    status, result = call("POST", f"/discharge/sessions/{sid}/submit", api_key, json={})
    if status == 409 and override:
        print(f"⚠️  Conflicts: {result.get('conflicts')}, resubmitting with override")
        status, result = call("POST", f"/discharge/sessions/{sid}/submit/override", api_key)
    print(f"✅ Discharge → HTTP {status}: {result}")

    call("DELETE", f"/discharge/sessions/{sid}", api_key)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Simulate an operator bulk discharge")
    parser.add_argument("--url", default=CONSOLE_URL)
    parser.add_argument("--vehicle", action="append", default=[], help="Vehicle number (repeatable)")
    parser.add_argument("--mode", default="manual", choices=["otp", "image", "manual"])
    parser.add_argument("--api-key", default=None)
    parser.add_argument("--override", action="store_true", help="Resubmit once if a conflict is reported")
    args = parser.parse_args()

    CONSOLE_URL = args.url.rstrip("/")
    simulate(args.vehicle, args.mode, args.api_key, args.override)
