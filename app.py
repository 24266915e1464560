"""
=============================================================================
SPEAKING COACH: APPLICATION ENTRY POINT (app.py)
=============================================================================

ENTRY POINT OVERVIEW:
---------------------
Running "python app.py" starts the HTTP backend that the speaking-practice client
talks to while you rehearse. The backend:

  1. Receives microphone analyser frames and speech-recognition results pushed by
     the browser while you practice.
  2. Turns them into live metrics (confidence, stress, flow, antifragility), picks
     recovery exercises when you struggle, and keeps a resilience score.
  3. Hands out a short-lived Azure Speech token so the browser can run speech
     recognition without ever seeing the secret key.

URL handlers live in routes.py; the per-session pipeline lives in
coaching_session.py.

RUNNING IT:
-----------
  - python app.py        (from the project root)
  - Listens on FLASK_HOST:FLASK_PORT, http://localhost:5000 unless overridden

CONFIGURATION:
--------------
  - Settings (API keys, ports, thresholds) come from the .env file and config.py.
  - Keys (SPEECH_KEY, AZURE_FOUNDRY_KEY) are only ever read from the environment.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: .env first, so config.py sees the values at import time
# ---------------------------------------------------------------------------
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Web framework, routes and settings
# ---------------------------------------------------------------------------
import logging

from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

from routes import register_routes
import config

# ---------------------------------------------------------------------------
# Step 3: Report optional secrets that are not set
# ---------------------------------------------------------------------------
config.warn_missing_config()


def create_app() -> Flask:
    """
    Create and configure the Flask application (the web server).

    What it does:
      - Creates a new Flask "app" object.
      - Enables CORS so the practice client can call the API from another origin.
      - Enables compression for the larger metrics/recovery responses.
      - Registers all URL routes from routes.py.

    Returns:
        The configured Flask application.
    """
    app = Flask(__name__)

    # Allow the browser to call our API from another origin.
    CORS(app, resources={r"/*": {"origins": "*"}})

    Compress(app)

    register_routes(app)

    return app


# ---------------------------------------------------------------------------
# Module-level app (imported by tests and WSGI servers)
# ---------------------------------------------------------------------------
app = create_app()


# ---------------------------------------------------------------------------
# Direct execution: "python app.py"
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    """
    - If FLASK_DEBUG is true: Flask's development server (auto-reload, debugger).
    - Otherwise: Waitress with several threads, so frame pushes, result pushes
      and metric polls are served concurrently.
    """
    logging.basicConfig(
        level=logging.INFO if config.METRICS_DIAGNOSTIC_LOGGING else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if config.FLASK_DEBUG:
        # No reloader: it would start a second process with its own session tickers.
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True,
            use_reloader=False,
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=6)
