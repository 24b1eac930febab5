"""
Environment configuration for the festival sync server
"""
import os

PORT = int(os.environ.get("PORT", 3001))
SERVER_HOST = os.environ.get("SERVER_HOST", "0.0.0.0")

JWT_SECRET = os.environ.get("JWT_SECRET", "default-secret")
JWT_EXPIRES_IN = int(os.environ.get("JWT_EXPIRES_IN", 15 * 60))

# Seconds between heartbeat sweeps; a silent peer is gone after two of these
HEARTBEAT_INTERVAL = float(os.environ.get("HEARTBEAT_INTERVAL", 30))

# Frames queued per session before new events are dropped for it
OUTBOX_LIMIT = int(os.environ.get("OUTBOX_LIMIT", 256))

SEED_FILE = os.environ.get("FESTIVAL_SEED_FILE")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
