# Vercel zero-config entrypoint: re-export only
from backend.main import app  # noqa: F401
