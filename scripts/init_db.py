#!/usr/bin/env python3
"""
MongoDB Database Initialization Script for Tubely.

This script creates the ``videos`` collection with its JSON schema validator
and the indexes the API relies on. It is idempotent: run it as often as you
like, existing collections get their validator refreshed and existing indexes
are skipped.

Usage:
    python init_db.py [options]

Options:
    --drop          Drop the videos collection before creation (WARNING: destructive)
    --yes           Do not ask for confirmation before dropping
    --verbose       Display detailed operation logs
    --help          Show this help message and exit

Environment Variables:
    MONGODB_URI         MongoDB connection URI (default: mongodb://localhost:27017)
    MONGODB_DB_NAME     Database name (default: tubely)
"""

import argparse
import os
import sys
import time
import uuid

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from pymongo import ASCENDING, DESCENDING, IndexModel, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    CollectionInvalid,
    ConnectionFailure,
    OperationFailure,
    PyMongoError,
    ServerSelectionTimeoutError,
)


# Constants
DEFAULT_DATABASE_NAME = "tubely"
DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
CONNECTION_TIMEOUT_MS = 5000
MAX_CONNECT_RETRIES = 3

VIDEOS_COLLECTION = "videos"

VIDEOS_VALIDATOR: Dict[str, Any] = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["_id", "user_id", "title", "created_at", "updated_at"],
        "properties": {
            "_id": {
                "bsonType": "string",
                "description": "Video UUID (required)",
            },
            "user_id": {
                "bsonType": "string",
                "description": "Owning user's ID (required)",
            },
            "title": {
                "bsonType": "string",
                "minLength": 1,
                "maxLength": 200,
                "description": "Display title (required)",
            },
            "description": {
                "bsonType": "string",
                "maxLength": 5000,
            },
            "thumbnail_url": {
                "bsonType": ["string", "null"],
                "description": "Public URL of the locally served thumbnail",
            },
            "video_url": {
                "bsonType": ["string", "null"],
                "description": "Storage reference '<bucket>,<key>' or CDN URL",
            },
            "created_at": {"bsonType": "date"},
            "updated_at": {"bsonType": "date"},
        },
    }
}

VIDEOS_INDEXES: List[IndexModel] = [
    IndexModel([("user_id", ASCENDING)], name="user_id_idx"),
    IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="user_videos_sorted_idx"),
]


class DatabaseInitializer:
    """
    MongoDB database initializer for Tubely.

    Creates the videos collection, its validation rules and its indexes, then
    verifies the result with a round trip through the collection.
    """

    def __init__(self, verbose: bool = False):
        """
        Initialize the database initializer.

        Args:
            verbose: Enable verbose logging output.
        """
        self.verbose = verbose
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self.database_name = DEFAULT_DATABASE_NAME

    def log(self, message: str, level: str = "INFO") -> None:
        """
        Log a message with timestamp.

        Args:
            message: Message to log.
            level: Log level (INFO, WARNING, ERROR, DEBUG).
        """
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    def connect(self) -> bool:
        """
        Establish connection to MongoDB server with retry logic.

        Returns:
            True if connection successful, False otherwise.
        """
        load_dotenv()

        mongodb_uri = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
        self.database_name = os.getenv("MONGODB_DB_NAME", DEFAULT_DATABASE_NAME)

        self.log(f"Connecting to MongoDB at {self._mask_uri(mongodb_uri)}...")

        retry_delay = 2
        for attempt in range(1, MAX_CONNECT_RETRIES + 1):
            try:
                self.client = MongoClient(
                    mongodb_uri,
                    serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                    connectTimeoutMS=CONNECTION_TIMEOUT_MS,
                    uuidRepresentation="standard",
                    tz_aware=True,
                )
                self.client.admin.command("ping")
                self.db = self.client[self.database_name]

                self.log("Successfully connected to MongoDB server")
                self.log(f"Using database: {self.database_name}", "DEBUG")
                return True

            except ServerSelectionTimeoutError as e:
                self.log(f"Server selection timeout: {e}", "ERROR")
                self.log("Ensure MongoDB is running and accessible at the configured URI.", "ERROR")
                return False

            except ConnectionFailure as e:
                self.log(f"Connection attempt {attempt}/{MAX_CONNECT_RETRIES} failed: {e}", "WARNING")
                if attempt < MAX_CONNECT_RETRIES:
                    self.log(f"Retrying in {retry_delay} seconds...")
                    time.sleep(retry_delay)
                    retry_delay *= 2  # Exponential backoff

        self.log("Failed to connect after all retry attempts", "ERROR")
        return False

    @staticmethod
    def _mask_uri(uri: str) -> str:
        """Mask credentials in a MongoDB URI for logging."""
        if "@" in uri:
            protocol_end = uri.find("://") + 3
            at_pos = uri.find("@")
            return f"{uri[:protocol_end]}***:***{uri[at_pos:]}"
        return uri

    def drop_videos(self) -> bool:
        """
        Drop the videos collection (destructive operation).

        Returns:
            True if dropped or absent, False on error.
        """
        self.log("DROPPING VIDEOS COLLECTION - THIS IS DESTRUCTIVE!", "WARNING")
        try:
            if VIDEOS_COLLECTION in self.db.list_collection_names():
                self.db[VIDEOS_COLLECTION].drop()
                self.log(f"Dropped collection: {VIDEOS_COLLECTION}", "WARNING")
            else:
                self.log(f"Collection {VIDEOS_COLLECTION} does not exist, skipping", "DEBUG")
            return True
        except PyMongoError as e:
            self.log(f"Error dropping collection: {e}", "ERROR")
            return False

    def create_collection_with_validation(
        self,
        name: str,
        validator: Dict[str, Any],
        validation_level: str = "moderate",
        validation_action: str = "error",
    ) -> Collection:
        """
        Create a collection with JSON schema validation, or refresh the
        validator of an existing one.
        """
        if name in self.db.list_collection_names():
            self.log(f"Collection {name} already exists, updating validation rules", "DEBUG")
            self.db.command(
                "collMod",
                name,
                validator=validator,
                validationLevel=validation_level,
                validationAction=validation_action,
            )
            return self.db[name]

        try:
            self.db.create_collection(
                name,
                validator=validator,
                validationLevel=validation_level,
                validationAction=validation_action,
            )
            self.log(f"Created collection: {name}")
        except CollectionInvalid as e:
            self.log(f"Collection {name} already exists: {e}", "DEBUG")
        return self.db[name]

    def create_videos_collection(self) -> bool:
        """
        Create the videos collection with schema validation and indexes.

        Returns:
            True if successful, False otherwise.
        """
        self.log("Creating videos collection...")
        try:
            collection = self.create_collection_with_validation(VIDEOS_COLLECTION, VIDEOS_VALIDATOR)
            self._create_indexes_safely(collection, VIDEOS_INDEXES)
            return True
        except PyMongoError as e:
            self.log(f"Error creating videos collection: {e}", "ERROR")
            return False

    def _create_indexes_safely(self, collection: Collection, indexes: List[IndexModel]) -> None:
        """Create indexes, skipping those that already exist."""
        existing = collection.index_information()
        for index in indexes:
            index_name = index.document.get("name", "unnamed_index")
            if index_name in existing:
                self.log(f"  Index '{index_name}' already exists, skipping", "DEBUG")
                continue
            try:
                collection.create_indexes([index])
                self.log(f"  Created index: {index_name}", "DEBUG")
            except OperationFailure as e:
                self.log(f"  Error creating index {index_name}: {e}", "WARNING")

    def verify_initialization(self) -> bool:
        """
        Verify the collection and its indexes, then insert, read and delete a
        throwaway record.

        Returns:
            True if verification passed, False otherwise.
        """
        self.log("VERIFICATION SUMMARY")
        try:
            if VIDEOS_COLLECTION not in self.db.list_collection_names():
                self.log(f"  ✗ {VIDEOS_COLLECTION}: MISSING", "ERROR")
                return False

            videos = self.db[VIDEOS_COLLECTION]
            indexes = videos.index_information()
            self.log(
                f"  ✓ {VIDEOS_COLLECTION}: {videos.count_documents({})} documents, "
                f"{len(indexes) - 1} custom indexes"
            )
            for idx_name, idx_info in indexes.items():
                if idx_name != "_id_":
                    self.log(f"    - {idx_name}: {idx_info.get('key', {})}", "DEBUG")

            now = datetime.now(timezone.utc)
            test_id = f"init-check-{uuid.uuid4()}"
            videos.insert_one(
                {
                    "_id": test_id,
                    "user_id": "init-check",
                    "title": "init check",
                    "description": "",
                    "thumbnail_url": None,
                    "video_url": None,
                    "created_at": now,
                    "updated_at": now,
                }
            )
            found = videos.find_one({"_id": test_id}) is not None
            videos.delete_one({"_id": test_id})

            if not found:
                self.log("  ✗ CRUD operations failed", "ERROR")
                return False
            self.log("  ✓ CRUD operations successful")
            self.log("✓ Database initialization completed successfully!")
            return True

        except PyMongoError as e:
            self.log(f"Verification error: {e}", "ERROR")
            return False

    def close(self) -> None:
        """Close the MongoDB connection."""
        if self.client:
            self.client.close()
            self.log("MongoDB connection closed", "DEBUG")


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Initialize the MongoDB database for Tubely",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python init_db.py                  # Initialize database with defaults
  python init_db.py --verbose        # Initialize with detailed logging
  python init_db.py --drop           # Drop the videos collection first (DESTRUCTIVE)

Environment Variables:
  MONGODB_URI          MongoDB connection URI (default: mongodb://localhost:27017)
  MONGODB_DB_NAME      Database name (default: tubely)
        """,
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop the videos collection before creation (WARNING: destructive operation)",
    )
    parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip the confirmation prompt for --drop"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Display detailed operation logs"
    )
    return parser.parse_args()


def main() -> int:
    """
    Main entry point for the database initialization script.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = parse_arguments()

    print("\n" + "=" * 60)
    print("Tubely - MongoDB Database Initialization")
    print("=" * 60 + "\n")

    initializer = DatabaseInitializer(verbose=args.verbose)
    try:
        if not initializer.connect():
            print("\nFailed to connect to MongoDB. Exiting.")
            return 1

        if args.drop:
            if not args.yes:
                confirmation = input(
                    "\nWARNING: This will DELETE ALL VIDEO RECORDS.\nType 'yes' to confirm: "
                )
                if confirmation.lower() != "yes":
                    print("Operation cancelled.")
                    return 0
            if not initializer.drop_videos():
                return 1

        if not initializer.create_videos_collection():
            return 1
        return 0 if initializer.verify_initialization() else 1

    except KeyboardInterrupt:
        print("\n\nInitialization interrupted by user.")
        return 130

    finally:
        initializer.close()


if __name__ == "__main__":
    sys.exit(main())
