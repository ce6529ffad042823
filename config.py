"""
Configuration settings for the RainYield application
"""
import os
import logging

from dotenv import load_dotenv

load_dotenv()  # reads .env beside the app, if present

LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///rainyield.db')

# Outbound climate data
OPENWEATHER_API_KEY = os.environ.get('OPENWEATHER_API_KEY', '')
CLIMATE_API_ENABLED = os.environ.get('CLIMATE_API_ENABLED', 'false').lower() == 'true'
CLIMATE_API_TIMEOUT = float(os.environ.get('CLIMATE_API_TIMEOUT', 8))

# Community grouping
DEFAULT_NEIGHBORHOOD = os.environ.get('DEFAULT_NEIGHBORHOOD', 'default')

# Path to the bundled lookup tables
BASE_DIR = os.path.abspath(os.path.dirname(__file__))
DATA_DIR = os.path.join(BASE_DIR, 'data')

logger.debug(f"Data directory set to: {DATA_DIR}")
logger.debug(f"Remote climatology enabled: {CLIMATE_API_ENABLED}")

# Admin account created by `python app.py` when none exists
ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@rainyield.local')
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')
