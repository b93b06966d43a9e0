"""
Fire concurrent stock changes at a running server and report lost updates.

Each worker sends one single-step decrement (or increment) for the same menu
item. Every request reads the count, adjusts it and writes it back, so without
STOCK_ATOMIC_UPDATES the final count usually shows fewer changes than were sent.

Usage:
    python tools/concurrency_stock.py --item <menu-id> --workers 16
    python tools/concurrency_stock.py --item <menu-id> --direction increment
"""
import argparse
import concurrent.futures
import os

import requests

BASE = os.environ.get("BACKOFFICE_BASE", "http://127.0.0.1:8000")


def login(email, password):
    r = requests.post(
        f"{BASE}/api/auth/admin/login",
        json={"email": email, "password": password},
        timeout=10,
    )
    r.raise_for_status()
    return {"Authorization": f"Bearer {r.json()['token']}"}


def current_stock(headers, item_id):
    r = requests.get(f"{BASE}/api/menu/{item_id}", headers=headers, timeout=10)
    r.raise_for_status()
    return int(r.json().get("stock") or 0)


def stock_task(i, headers, item_id, direction):
    try:
        r = requests.post(f"{BASE}/api/stock/{item_id}/{direction}", headers=headers, timeout=20)
        return (i, r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def run_concurrent(workers, headers, item_id, direction):
    before = current_stock(headers, item_id)
    print(f"Running {direction} test: workers={workers}, item={item_id}, stock before={before}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(stock_task, i, headers, item_id, direction) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r)

    ok = sum(1 for r in results if r[1] == 200)
    after = current_stock(headers, item_id)
    if direction == "increment":
        expected = before + ok
    else:
        expected = max(0, before - ok)
    print(f"Successful requests: {ok}")
    print(f"Stock after: {after} (expected {expected})")
    if after != expected:
        print(f"Lost updates: {abs(expected - after)}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Concurrent stock update tester.")
    parser.add_argument("--item", required=True, help="menu item id")
    parser.add_argument("--workers", type=int, default=8)
    parser.add_argument("--direction", choices=["increment", "decrement"], default="decrement")
    parser.add_argument("--email", default=os.environ.get("BACKOFFICE_EMAIL", "admin@example.com"))
    parser.add_argument("--password", default=os.environ.get("BACKOFFICE_PASSWORD", "change-me-admin"))
    args = parser.parse_args()

    headers = login(args.email, args.password)
    run_concurrent(args.workers, headers, args.item, args.direction)
