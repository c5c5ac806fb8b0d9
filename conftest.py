import os

# Test settings, applied before config.py is first imported by any test module
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("VALKEY_HOST", "")
