# run.py
"""
Development server entry point.
Creates the tables if needed, then serves the JSON API.
"""
import os

from sekisan.app_factory import create_app
from sekisan.db.init_db import init_db
from sekisan.logger import get_logger

logger = get_logger("sekisan.run")


def main():
    # 1️ Flask app (also fixes DATABASE_URL)
    app = create_app()

    # 2️ tables
    init_db()
    logger.info(f"DB URI: {app.config['DATABASE_URL']}")

    # 3️ serve
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("FLASK_DEBUG", "0") == "1"
    app.run(host=host, port=port, debug=debug, use_reloader=False)


if __name__ == "__main__":
    main()
