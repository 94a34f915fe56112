"""
Serverless entry point for the Helpdesk API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("SLA_EVALUATION_INTERVAL", "0")  # No scheduler in serverless; run the sweep from a cron trigger

from mangum import Mangum

from helpdesk.infrastructure.database import init_database
from helpdesk.main import app

# Lifespan is off in serverless, so the engine is created at import time
init_database()

handler = Mangum(app, lifespan="off")
