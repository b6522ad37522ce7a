#!/usr/bin/env python3
"""
Seed products (and their variants) from a JSON file.

The file holds either a list of entries or an object with an "items" list.

Usage:
    python scripts/seed_products.py --file catalog.json [--reset]
"""
import argparse
import json
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from storefront.db import SessionLocal, init_db
from storefront.seed import seed_catalog


def load_entries(path: str):
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data.get("items", list(data.values()))
    return data


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", "-f", required=True, help="Path to a catalog JSON file")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate tables first")
    args = parser.parse_args()
    if not os.path.exists(args.file):
        print("File not found:", args.file)
        sys.exit(1)
    init_db(reset=args.reset)
    db = SessionLocal()
    try:
        ids = seed_catalog(db, load_entries(args.file))
        print("Seeded products:", len(ids))
    finally:
        db.close()
