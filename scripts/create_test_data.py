#!/usr/bin/env python3
"""
Test Data Generation Script for Tubely.

This script seeds draft video records for local development and prints a
bearer token for each seeded user, so the upload endpoints can be exercised
with curl or the API docs right away.

Seeded records carry ``seeded: true`` so ``--clean`` can remove exactly what
this script created.

Usage:
    python create_test_data.py [options]

Options:
    --users INT     Number of users to create (default: 3)
    --videos INT    Draft videos per user (default: 5)
    --clean         Delete previously seeded records before generation
    --seed INT      Random seed for reproducible data generation
    --verbose       Display detailed operation logs
    --help          Show this help message and exit

Environment Variables:
    MONGODB_URI             MongoDB connection URI (default: mongodb://localhost:27017)
    MONGODB_DB_NAME         Database name (default: tubely)
    SECRET_KEY              JWT signing secret (must match the API's)
    APP_NAME                Token issuer (default: tubely)
    JWT_ALGORITHM           JWT signing algorithm (default: HS256)
    JWT_EXPIRATION_HOURS    Token lifetime in hours (default: 24)
"""

import argparse
import os
import random
import sys
import uuid

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from faker import Faker
from jose import jwt
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError, ServerSelectionTimeoutError


# Constants
DEFAULT_DATABASE_NAME = "tubely"
DEFAULT_MONGODB_URI = "mongodb://localhost:27017"
DEFAULT_SECRET_KEY = "development-secret-key-change-in-production-32chars"
CONNECTION_TIMEOUT_MS = 5000

VIDEOS_COLLECTION = "videos"

# Seeded records are spread over this many days before now
CREATED_AT_SPREAD_DAYS = 30


class TestDataGenerator:
    """
    Test data generator for Tubely.

    Creates draft video records (no video or thumbnail yet) owned by freshly
    generated user ids, and signs a bearer token for each user.
    """

    def __init__(self, seed: Optional[int] = None, verbose: bool = False):
        self.verbose = verbose
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None
        self.fake = Faker()
        if seed is not None:
            random.seed(seed)
            Faker.seed(seed)

    def log(self, message: str, level: str = "INFO") -> None:
        """Log a message with timestamp."""
        if level == "DEBUG" and not self.verbose:
            return
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
        print(f"[{timestamp}] [{level}] {message}")

    def connect(self) -> bool:
        """
        Connect to MongoDB.

        Returns:
            True if connection successful, False otherwise.
        """
        load_dotenv()
        mongodb_uri = os.getenv("MONGODB_URI", DEFAULT_MONGODB_URI)
        database_name = os.getenv("MONGODB_DB_NAME", DEFAULT_DATABASE_NAME)

        try:
            self.client = MongoClient(
                mongodb_uri,
                serverSelectionTimeoutMS=CONNECTION_TIMEOUT_MS,
                uuidRepresentation="standard",
                tz_aware=True,
            )
            self.client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            self.log(f"Failed to connect to MongoDB: {e}", "ERROR")
            return False

        self.db = self.client[database_name]
        self.log(f"Connected to MongoDB database: {database_name}")
        return True

    def clean_test_data(self) -> bool:
        """Delete records created by earlier runs."""
        try:
            result = self.db[VIDEOS_COLLECTION].delete_many({"seeded": True})
        except PyMongoError as e:
            self.log(f"Error cleaning test data: {e}", "ERROR")
            return False
        self.log(f"Deleted {result.deleted_count} seeded video records")
        return True

    def generate_videos(self, user_ids: List[str], per_user: int) -> List[Dict[str, Any]]:
        """
        Insert ``per_user`` draft videos for each user.

        Returns:
            The inserted documents.
        """
        now = datetime.now(timezone.utc)
        documents: List[Dict[str, Any]] = []
        for user_id in user_ids:
            for _ in range(per_user):
                created_at = now - timedelta(
                    days=random.randint(0, CREATED_AT_SPREAD_DAYS),
                    minutes=random.randint(0, 24 * 60),
                )
                documents.append(
                    {
                        "_id": str(uuid.uuid4()),
                        "user_id": user_id,
                        "title": self.fake.sentence(nb_words=4).rstrip("."),
                        "description": self.fake.paragraph(nb_sentences=2),
                        "thumbnail_url": None,
                        "video_url": None,
                        "created_at": created_at,
                        "updated_at": created_at,
                        "seeded": True,
                    }
                )

        if documents:
            self.db[VIDEOS_COLLECTION].insert_many(documents)
        self.log(f"Inserted {len(documents)} draft videos for {len(user_ids)} users")
        for doc in documents:
            self.log(f"  {doc['_id']}  {doc['user_id']}  {doc['title']}", "DEBUG")
        return documents

    def close(self) -> None:
        """Close the MongoDB connection."""
        if self.client:
            self.client.close()


def create_token(user_id: str) -> str:
    """Sign a bearer token the API will accept for ``user_id``."""
    now = datetime.now(timezone.utc)
    hours = int(os.getenv("JWT_EXPIRATION_HOURS", "24"))
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(hours=hours),
        "iss": os.getenv("APP_NAME", "tubely"),
    }
    return jwt.encode(
        payload,
        os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY),
        algorithm=os.getenv("JWT_ALGORITHM", "HS256").upper(),
    )


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Seed Tubely with draft video records")
    parser.add_argument("--users", type=int, default=3, help="Number of users (default: 3)")
    parser.add_argument(
        "--videos", type=int, default=5, help="Draft videos per user (default: 5)"
    )
    parser.add_argument(
        "--clean", action="store_true", help="Delete previously seeded records first"
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Display detailed operation logs"
    )
    return parser.parse_args()


def main() -> int:
    """
    Main entry point for the test data script.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    args = parse_arguments()
    generator = TestDataGenerator(seed=args.seed, verbose=args.verbose)

    try:
        if not generator.connect():
            return 1
        if args.clean and not generator.clean_test_data():
            return 1

        user_ids = [str(uuid.uuid4()) for _ in range(args.users)]
        try:
            generator.generate_videos(user_ids, args.videos)
        except PyMongoError as e:
            generator.log(f"Error inserting videos: {e}", "ERROR")
            return 1

        print("\nBearer tokens:")
        for user_id in user_ids:
            print(f"  {user_id}\n    Authorization: Bearer {create_token(user_id)}")
        return 0

    finally:
        generator.close()


if __name__ == "__main__":
    sys.exit(main())
