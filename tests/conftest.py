import os

# Keep unit tests off the Redis events channel
os.environ.setdefault("PUBLISH_EVENTS", "false")
