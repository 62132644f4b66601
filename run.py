"""Local development entry point.

Usage:
    python run.py

The SSE feed holds a worker per open stream, so the dev server runs
threaded.
"""

from dotenv import load_dotenv

load_dotenv()  # Load .env before anything else

from taskboard import create_app

app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5001, threaded=True)
