# backend/neuroscan/firebase_admin_init.py
import os
import firebase_admin
from firebase_admin import credentials

from .config import FIREBASE_CREDENTIALS


def init_admin():
    if firebase_admin._apps:
        return firebase_admin.get_app()

    if not FIREBASE_CREDENTIALS:
        raise RuntimeError("FIREBASE_CREDENTIALS is not set")
    if not os.path.exists(FIREBASE_CREDENTIALS):
        raise RuntimeError(f"Firebase admin key not found at {FIREBASE_CREDENTIALS}")

    cred = credentials.Certificate(FIREBASE_CREDENTIALS)
    return firebase_admin.initialize_app(cred)
