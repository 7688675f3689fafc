import firebase_admin
from firebase_admin import credentials

def init_firebase(service_account_path: str, storage_bucket: str | None = None):
    if not firebase_admin._apps:
        cred = credentials.Certificate(service_account_path)
        options = {"storageBucket": storage_bucket} if storage_bucket else None
        firebase_admin.initialize_app(cred, options)
