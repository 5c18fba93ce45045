"""
Gate configuration
Load settings from environment variables
"""
import os
from dotenv import load_dotenv

load_dotenv()

# Remote API
GATE_API_BASE_URL = os.getenv("GATE_API_BASE_URL", "https://greenhillbeachclub.net/accounts/api")
GATE_API_KEY = os.getenv("GATE_API_KEY", "")
GATE_API_TIMEOUT = float(os.getenv("GATE_API_TIMEOUT")) if os.getenv("GATE_API_TIMEOUT") else None

# Device
GATE_DEVICE_ID = os.getenv("GATE_DEVICE_ID", "gate_tablet_1")
GATE_DB_PATH = os.getenv("GATE_DB_PATH", "gate_app.db")

# Application Settings
SECRET_KEY = os.getenv("SECRET_KEY", "gate-secret")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
