"""
Adaptive fixtures for integration tests.

Runs against the Firestore Emulator or real Firestore depending on the
``FIRESTORE_EMULATOR_HOST`` environment variable; skipped when neither an
emulator nor service-account credentials are available.

Emulator mode:  FIRESTORE_EMULATOR_HOST=localhost:8080  (fast, no creds)
Real mode:      GOOGLE_APPLICATION_CREDENTIALS=sa.json  (needs GCP creds)
"""

import json
import logging
import os
import warnings

import httpx
import pytest
import pytest_asyncio

from slate_feed import ALL_DOCUMENT_MODELS, FirestoreDB, FirestoreStore, SlateConfig

logger = logging.getLogger(__name__)

# ── Environment detection ────────────────────────────────────────────────────

EMULATOR_HOST = os.environ.get("FIRESTORE_EMULATOR_HOST", "").strip()
DATABASE = os.environ.get("DATABASE", None) or None
CREDENTIALS_PATH = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS", "")

IS_EMULATOR = bool(EMULATOR_HOST)

# An unset CI secret expands to "", so fall through with ``or``.
PROJECT_ID = os.environ.get("GOOGLE_CLOUD_PROJECT") or ""

if not PROJECT_ID and not IS_EMULATOR and CREDENTIALS_PATH:
    try:
        with open(CREDENTIALS_PATH) as _f:
            PROJECT_ID = json.load(_f).get("project_id", "") or ""
    except (OSError, ValueError) as _exc:
        logger.warning("Could not read project_id from SA file: %s", _exc)

if not PROJECT_ID:
    PROJECT_ID = "demo-slate"

HAS_BACKEND = IS_EMULATOR or bool(CREDENTIALS_PATH)

TEST_COLLECTIONS = [model.get_collection_name() for model in ALL_DOCUMENT_MODELS]


# ── Per-test fixtures ────────────────────────────────────────────────────────


@pytest.fixture()
def firestore_db():
    """
    FirestoreDB pointing to the emulator or real Firestore.

    Function-scoped so each test gets a fresh AsyncClient bound to the
    current event loop (avoids 'Event loop is closed' with gRPC).
    """
    if not HAS_BACKEND:
        pytest.skip("No Firestore emulator or credentials configured")

    if IS_EMULATOR:
        config = SlateConfig(project_id=PROJECT_ID, emulator_host=EMULATOR_HOST)
        return FirestoreDB(config)

    from google.oauth2.service_account import Credentials

    credentials = Credentials.from_service_account_file(CREDENTIALS_PATH)
    return FirestoreDB(SlateConfig(project_id=PROJECT_ID, database=DATABASE), credentials=credentials)


@pytest.fixture()
def firestore_store(firestore_db):
    return FirestoreStore(firestore_db)


@pytest.fixture()
def raw_client(firestore_db):
    """Raw AsyncClient pointing to the same backend as the store."""
    return firestore_db.client


@pytest_asyncio.fixture(autouse=True)
async def clean_firestore(firestore_db):
    """Wipe all data BEFORE and AFTER each test for complete isolation."""
    await _perform_cleanup(firestore_db)
    yield
    await _perform_cleanup(firestore_db)


async def _perform_cleanup(firestore_db):
    if IS_EMULATOR:
        db_name = DATABASE or "(default)"
        url = (
            f"http://{EMULATOR_HOST}/emulator/v1/projects/"
            f"{PROJECT_ID}/databases/{db_name}/documents"
        )
        async with httpx.AsyncClient() as client:
            await client.delete(url)
        return

    try:
        await _cleanup_real_firestore(firestore_db.client, TEST_COLLECTIONS)
    except Exception as exc:  # noqa: BLE001
        # A teardown that raises turns a passing test into FAILED+ERROR.
        warnings.warn(
            f"[conftest] Firestore cleanup error (data may leak between tests): {exc}",
            stacklevel=1,
        )


async def _cleanup_real_firestore(client, collections: list):
    """Delete every document of ``collections`` in batches of 500."""
    for col_name in collections:
        docs = [doc async for doc in client.collection(col_name).stream()]
        for i in range(0, len(docs), 500):
            batch = client.batch()
            for doc in docs[i:i + 500]:
                batch.delete(doc.reference)
            await batch.commit()
