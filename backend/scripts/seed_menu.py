#!/usr/bin/env python3
"""
Seed menu items and staff accounts from a JSON file (scripts/sample_menu.json by default).

The file holds a ``menu`` list of items and a ``staff`` list of accounts; a bare
list is treated as menu items only. Items whose name already exists on the menu
and accounts whose email is already registered are left alone, so the script
can be re-run against a live database.

Usage:
    python scripts/seed_menu.py --file scripts/sample_menu.json
"""
import argparse
import json
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from backoffice.adapters.auth_provider import LocalAuthProvider
from backoffice.db import SessionLocal, init_db
from backoffice.logging_config import configure_logging
from backoffice.services.auth_service import AuthException, AuthService
from backoffice.services.menu_service import MenuException, MenuService
from backoffice.services.user_service import UserService

DEFAULT_SOURCE = os.path.join(os.path.dirname(__file__), "sample_menu.json")


def _normalize_item(entry):
    """Return a menu dict with name, category, price, stock and sold."""
    def _number(value, cast):
        try:
            return cast(value)
        except (TypeError, ValueError):
            return cast(0)

    return {
        "name": (entry.get("name") or entry.get("title") or "").strip(),
        "category": entry.get("category") or "",
        "price": _number(entry.get("price", 0), float),
        "stock": _number(entry.get("stock", entry.get("quantity", 0)), int),
        "sold": _number(entry.get("sold", 0), int),
    }


def load_source(path):
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except ValueError as e:
            raise RuntimeError(f"Failed to parse JSON from {path}: {e}")
    if isinstance(data, list):
        return data, []
    if isinstance(data, dict):
        return data.get("menu") or [], data.get("staff") or []
    return [], []


def seed_menu(db, entries):
    svc = MenuService(db)
    existing = {item.get("name") for item in svc.list_items()}
    created = 0
    for entry in entries:
        item = _normalize_item(entry)
        if not item["name"] or item["name"] in existing:
            continue
        try:
            svc.create_item(item)
        except MenuException as e:
            print(f"Skipping {item['name']!r}: {e}")
            continue
        existing.add(item["name"])
        created += 1
    return created


def seed_staff(db, entries):
    provider = LocalAuthProvider()
    auth = AuthService(db, provider)
    users = UserService(db)
    created = 0
    try:
        for entry in entries:
            email = entry.get("email")
            password = entry.get("password")
            if not email or not password:
                continue
            try:
                user = auth.register(email, password, name=entry.get("name", ""))
            except AuthException as e:
                print(f"Skipping {email}: {e}")
                continue
            role = entry.get("role") or "user"
            if role != user["role"]:
                users.change_role(user["id"], role, actor="seed")
            created += 1
    finally:
        provider.close()
    return created


def seed_from_file(path):
    if not os.path.exists(path):
        raise FileNotFoundError(path)
    menu, staff = load_source(path)

    init_db()
    db = SessionLocal()
    try:
        items = seed_menu(db, menu)
        accounts = seed_staff(db, staff)
        print("Seeded menu items:", items)
        print("Seeded staff accounts:", accounts)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", default=DEFAULT_SOURCE, help="Path to a menu/staff json file")
    args = parser.parse_args()
    if not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    configure_logging()
    seed_from_file(args.file)
