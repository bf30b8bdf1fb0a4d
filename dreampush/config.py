import json
import logging
import os
import firebase_admin
from firebase_admin import credentials

from dreampush.core.settings import settings

logger = logging.getLogger(__name__)


def init_firebase():
    """Initialize Firebase admin SDK (used to verify caller ID tokens).

    Behavior:
    - If FIREBASE_SERVICE_ACCOUNT env var is present, parse it as JSON and use it.
    - Else if FIREBASE_SERVICE_ACCOUNT_PATH points at an existing file, use that path.
    - Else, do nothing (avoid raising at import time).

    The push pipeline reads the same credential on its own for every pass.
    """
    if firebase_admin._apps:
        return

    fb_json = settings.firebase_service_account_json
    if fb_json:
        try:
            cred_dict = json.loads(fb_json)
            cred = credentials.Certificate(cred_dict)
            firebase_admin.initialize_app(cred)
            return
        except Exception as e:
            # Fall through to file-based loading which may still work
            logger.error(f"Failed to init Firebase from FIREBASE_SERVICE_ACCOUNT: {e}")

    fb_path = settings.firebase_service_account_path
    if fb_path and os.path.exists(fb_path):
        try:
            cred = credentials.Certificate(fb_path)
            firebase_admin.initialize_app(cred)
            return
        except Exception as e:
            logger.error(f"Failed to init Firebase from path {fb_path}: {e}")

    logger.warning("No Firebase credentials found; skipping Firebase initialization.")
