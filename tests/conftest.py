import os

# jobrelay.settings reads config.json at import time.
os.environ.setdefault(
    "JOBRELAY_CONFIG",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config.json"),
)
