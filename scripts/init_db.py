"""
Initialize database schema.
Run this to create the fire tracker tables in the configured database.
"""

import argparse
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from fire_tracker.database import get_engine, init_db


def main():
    """Initialize database schema."""
    parser = argparse.ArgumentParser(description='Create fire tracker tables')
    parser.add_argument('--database-url', default=None,
                        help='SQLAlchemy URL (default: DATABASE_URL from environment)')
    args = parser.parse_args()

    print("Initializing database schema...")
    engine = init_db(get_engine(args.database_url))
    print(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")


if __name__ == '__main__':
    main()
