"""
=============================================================================
FACIAL GESTURE COUNTER: APPLICATION ENTRY POINT (app.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
When you run "python app.py", this starts a small web server that:

  1. Starts / stops / resets gesture counting (webcam, video file, stream, or
     blendshape scores pushed from a browser running the face landmarker).
  2. Reports live readings (blink, mouth, brow, brow baseline and delta) and
     the blink / mouth-open / brow-raise counts.
  3. Lets you change the three thresholds while counting is running.

The actual URL handlers live in routes.py.

HOW TO RUN:
-----------
  - From project root:  python app.py
  - By default the app is at:  http://127.0.0.1:5000

CONFIGURATION:
--------------
  - Settings come from the .env file and config.py.
=============================================================================
"""

# ---------------------------------------------------------------------------
# Step 1: Load environment variables from .env (before anything else)
# ---------------------------------------------------------------------------
import logging
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

# ---------------------------------------------------------------------------
# Step 2: Import the web framework and our own modules
# ---------------------------------------------------------------------------
from flask import Flask
from flask_cors import CORS
from flask_compress import Compress

from routes import register_routes
import config

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app() -> Flask:
    """
    Create and configure the Flask application.

    Enables CORS (so a page served elsewhere can push frames and read counts),
    response compression, and registers all routes from routes.py.
    """
    app = Flask(__name__)

    CORS(app, resources={r"/*": {"origins": "*"}})
    Compress(app)
    register_routes(app)

    return app


app = create_app()


if __name__ == "__main__":
    """
    FLASK_DEBUG=true uses Flask's development server; otherwise Waitress.
    Host and port come from config.
    """
    if config.FLASK_DEBUG:
        app.run(
            host=config.FLASK_HOST,
            port=config.FLASK_PORT,
            debug=True
        )
    else:
        import waitress
        waitress.serve(app, host=config.FLASK_HOST, port=config.FLASK_PORT, threads=4)
