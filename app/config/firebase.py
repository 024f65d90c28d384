"""
Firebase Firestore initialization.
Single-source-of-truth Firestore client for Crime Report Hub.

The client is created lazily, once per process. Every store in the app
(locations, crime_types, crime_reports) goes through get_db().
"""

import json
import logging
import os
import threading
from typing import Any, Callable, Optional, TypeVar

import firebase_admin
from firebase_admin import credentials, firestore

from app.core.settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

db: Optional[Any] = None
_init_lock = threading.Lock()


def initialize_firebase_app() -> firebase_admin.App:
    """
    Initialize the default Firebase Admin app (idempotent).
    Shared by Firestore and the token verifier.
    """
    if firebase_admin._apps:
        return firebase_admin.get_app()

    if settings.FIREBASE_CREDENTIALS_PATH:
        cred_path = settings.FIREBASE_CREDENTIALS_PATH

        if not os.path.exists(cred_path):
            raise FileNotFoundError(
                f"Firebase credentials file not found: {cred_path}\n"
                f"Please check your .env file and ensure FIREBASE_CREDENTIALS_PATH is correct.\n"
                f"Current working directory: {os.getcwd()}"
            )

        try:
            with open(cred_path, "r") as f:
                cred_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(
                f"Firebase credentials file is not valid JSON: {e}\n"
                f"Please check the file at: {cred_path}"
            )

        required_fields = ["type", "project_id", "private_key", "client_email"]
        missing_fields = [field for field in required_fields if field not in cred_data]
        if missing_fields:
            raise ValueError(
                f"Firebase credentials file is missing required fields: {missing_fields}\n"
                f"Please download a fresh service account key from Firebase Console."
            )

        logger.info(f"[FIRESTORE] Credentials file validated: {cred_path}")
        logger.info(f"[FIRESTORE] Project ID: {cred_data.get('project_id', 'N/A')}")
        return firebase_admin.initialize_app(credentials.Certificate(cred_path))

    logger.info("[FIRESTORE] No credentials path set, using Application Default Credentials")
    options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
    return firebase_admin.initialize_app(options=options)


def initialize_firestore():
    global db

    if db is not None:
        return db

    with _init_lock:
        if db is not None:
            return db

        if settings.USE_MOCK_DB:
            from app.config.mock_firestore import get_mock_db
            db = get_mock_db(settings.MOCK_DB_PATH)
            logger.info("[FIRESTORE] USING MOCK DATABASE")
            return db

        try:
            initialize_firebase_app()
            db = firestore.client()
        except FileNotFoundError as e:
            raise RuntimeError(
                f"Firestore initialization FAILED - Credentials file not found.\n"
                f"{str(e)}\n"
                f"SOLUTION: Check your .env file and ensure FIREBASE_CREDENTIALS_PATH points to a valid service account JSON file."
            )
        except ValueError as e:
            raise RuntimeError(
                f"Firestore initialization FAILED - Invalid credentials file.\n"
                f"{str(e)}\n"
                f"SOLUTION: Download a fresh service account key from Firebase Console."
            )
        except Exception as e:
            raise RuntimeError(
                f"Firestore initialization FAILED. Error: {e}\n"
                f"Please check your Firebase credentials and configuration."
            )

        logger.info("[FIRESTORE] USING REAL FIRESTORE DATABASE")
        logger.info(f"[FIRESTORE] Project: {settings.FIREBASE_PROJECT_ID or 'default'}")
        return db


def get_db():
    """
    Get the initialized Firestore client.

    Raises RuntimeError if Firestore has not been initialized and cannot be.
    """
    if db is None:
        try:
            initialize_firestore()
        except Exception as e:
            raise RuntimeError(
                f"Firestore not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            )
    return db


def run_transaction(callback: Callable[[Any], T], client=None) -> T:
    """
    Run callback(transaction) inside a single Firestore transaction.

    All reads inside the callback must happen before its first write.
    Firestore retries the callback on contention, so it must not have
    side effects outside the transaction.
    """
    client = client if client is not None else get_db()

    from app.config.mock_firestore import MockFirestore
    if isinstance(client, MockFirestore):
        return client.run_transaction(callback)

    @firestore.transactional
    def _run(transaction):
        return callback(transaction)

    return _run(client.transaction())
