#!/usr/bin/env python3
"""
Initialize the transaction tagger database.

Run this script to create the key-value store schema.
"""
from transaction_tagger.config.settings import ConfigLoader
from transaction_tagger.database.connection import SCHEMA_PATH, DatabaseConfig, DatabaseManager

def main():
    """initialize the database."""

    config = DatabaseConfig(ConfigLoader.database_path())
    print(f"Initializing database at: {config.db_path}")

    with DatabaseManager(config) as db:
        print(f"Executing schema from: {SCHEMA_PATH}")
        db.initialize_schema()

        cursor = db.get_connection().execute(
            "SELECT version, description FROM schema_version ORDER BY version DESC LIMIT 1"
        )
        row = cursor.fetchone()

        if row:
            print(f"✓ Database initialized successfully!")
            print(f"  Schema version: {row['version']}")
            print(f"  Description: {row['description']}")
        else:
            print("✗ Database initialization may have failed")

if __name__ == "__main__":
    main()
