"""
Danger: Clears ALL fee-desk data in the configured database.

Usage:
  python scripts/reset_database.py [--yes]

Removes the stored users, students and session entries. On the next start
the app seeds the bootstrap admin again (see SEED_ADMIN_EMAIL).
"""

from __future__ import annotations

import argparse
import sys
import os


def main() -> int:
    parser = argparse.ArgumentParser(description="Remove all stored users, students and the session.")
    parser.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    args = parser.parse_args()

    # Ensure project root is on sys.path so `import app` works when run from scripts/
    here = os.path.dirname(os.path.abspath(__file__))
    root = os.path.abspath(os.path.join(here, os.pardir))
    if root not in sys.path:
        sys.path.insert(0, root)
    from app import create_app

    app = create_app()
    keys = app.config["STORAGE_KEYS"]

    print("About to remove stored keys:")
    for name, key in keys.items():
        print(f"  - {name}: {key}")
    if not args.yes:
        answer = input("Type RESET to continue: ").strip()
        if answer != "RESET":
            print("Aborted.")
            return 1

    with app.app_context():
        kv = app.extensions["feedesk"]["kv"]
        for key in keys.values():
            kv.remove(key)
    print("Done. Restart the app to re-seed the admin account.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
