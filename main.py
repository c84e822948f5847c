"""
main.py

Flask process for the file sharing core. Link issuance, validation,
resolution and revocation are served by the application services attached
to the app; the expiration sweep runs under Celery beat.

Dependencies:
  - Python packages: Flask, redis, celery, google-cloud-storage
  - Infrastructure: Redis server

Run the scheduler with:
  celery -A celery_app.celery_app worker -B -Q default,sweep_queue
"""

import os

from app_factory import create_app

app = create_app()

if __name__ == "__main__":
    host = os.getenv("FLASK_HOST", "0.0.0.0")
    port = int(os.getenv("FLASK_PORT", 5000))
    debug = os.getenv("FLASK_DEBUG", "false").lower() == "true"

    app.run(host=host, port=port, debug=debug)
