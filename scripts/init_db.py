#!/usr/bin/env python3
"""
Create missing tables for a development database.
Run from the project root: python -m scripts.init_db
or: PYTHONPATH=. python scripts/init_db.py
"""
import os
import sys

# project root on PYTHONPATH
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from teachkit.core.config import settings
from teachkit.db.session import init_db


def main():
    if settings.app_env == "production":
        print("Refusing to create tables with APP_ENV=production; run migrations instead.")
        return
    init_db()
    print("Tables created (existing tables left untouched).")


if __name__ == "__main__":
    main()
