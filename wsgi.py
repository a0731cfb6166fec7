from __future__ import annotations

# Top-level WSGI entry so `gunicorn wsgi:app` works when the repository root is on PYTHONPATH.
# Application setup lives in the factory `fasticket.app.create_app`.
from fasticket.app import create_app


app = create_app()
