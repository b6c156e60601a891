import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 8080))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

WS_PATH = os.getenv("WS_PATH", "/ws")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]

# Frames queued per connection before further sends to it are dropped
OUTBOX_MAX_SIZE = int(os.getenv("OUTBOX_MAX_SIZE", 256))
PRUNE_EMPTY_ROOMS = os.getenv("PRUNE_EMPTY_ROOMS", "false").lower() in ("1", "true", "yes")
