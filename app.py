"""Application entry point for the club gate service."""

import logging

from clubgate.gate import config
from clubgate.webapp import create_app

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = create_app()


if __name__ == "__main__":
    # One writer owns the day's ledger.
    app.run(debug=True, threaded=False)
