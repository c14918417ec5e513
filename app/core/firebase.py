"""Firebase Admin SDK client wrapper."""

import json
import os
from datetime import timedelta
from typing import Any

import firebase_admin
from firebase_admin import auth, credentials, firestore_async
from starlette.concurrency import run_in_threadpool
from structlog import get_logger

logger = get_logger(__name__)


class FirebaseClient:
    """
    Explicitly constructed handle on a Firebase app.

    All Admin SDK auth calls are blocking HTTP calls, so every method here
    offloads them to the thread pool.
    """

    def __init__(self, firebase_app: firebase_admin.App):
        """Wrap an already initialized Firebase app."""
        self.app = firebase_app
        self._firestore: Any = None

    @classmethod
    def initialize(
        cls,
        firebase_credentials_path: str | None = None,
        firebase_config_json: str | None = None,
        project_id: str | None = None,
        name: str = "[DEFAULT]",
    ) -> "FirebaseClient":
        """
        Initialize the Firebase Admin SDK and return a client bound to it.

        Args:
            firebase_credentials_path: Optional path to service account JSON file.
            firebase_config_json: Optional raw JSON string of service account.
            project_id: Optional explicit Google Cloud project id.
            name: Firebase app name.

        Looks for credentials in order:
        1. firebase_config_json (Vercel / production)
        2. firebase_credentials_path (local development)
        3. Application Default Credentials
        """
        cred: credentials.Base
        if firebase_config_json:
            logger.info("Initializing Firebase with JSON string from environment")
            cred = credentials.Certificate(json.loads(firebase_config_json))
        elif firebase_credentials_path and os.path.exists(firebase_credentials_path):
            logger.info("Initializing Firebase with JSON file", path=firebase_credentials_path)
            cred = credentials.Certificate(firebase_credentials_path)
        else:
            logger.info("Initializing Firebase with default credentials")
            cred = credentials.ApplicationDefault()

        options = {"projectId": project_id} if project_id else None

        try:
            firebase_app = firebase_admin.initialize_app(cred, options=options, name=name)
        except Exception as e:
            logger.error("Failed to initialize Firebase", error=str(e))
            raise

        return cls(firebase_app)

    def close(self) -> None:
        """Release the Firebase app."""
        firebase_admin.delete_app(self.app)

    def firestore(self) -> Any:
        """Async Firestore client bound to this app."""
        if self._firestore is None:
            self._firestore = firestore_async.client(app=self.app)
        return self._firestore

    async def verify_id_token(self, id_token: str) -> dict:
        """Verify a Firebase ID token and return its decoded claims."""
        return await run_in_threadpool(
            auth.verify_id_token, id_token, app=self.app, clock_skew_seconds=10
        )

    async def create_session_cookie(self, id_token: str, expires_in: timedelta) -> str:
        """Exchange an ID token for a session cookie."""
        return await run_in_threadpool(
            auth.create_session_cookie, id_token, expires_in=expires_in, app=self.app
        )

    async def verify_session_cookie(self, session_cookie: str) -> dict:
        """Verify a session cookie and return its decoded claims."""
        return await run_in_threadpool(
            auth.verify_session_cookie, session_cookie, app=self.app
        )

    async def get_user(self, uid: str) -> auth.UserRecord:
        """Fetch the provider-side account for a uid."""
        return await run_in_threadpool(auth.get_user, uid, app=self.app)

    async def get_user_by_email(self, email: str) -> auth.UserRecord:
        """Fetch the provider-side account for an email address."""
        return await run_in_threadpool(auth.get_user_by_email, email, app=self.app)

    async def create_user(self, **properties: Any) -> auth.UserRecord:
        """Create a provider-side account."""
        return await run_in_threadpool(auth.create_user, app=self.app, **properties)
