"""
Serverless entry point for the TelcoCare Triage API
"""
import sys
import os

# Add parent directory to path
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if parent_dir not in sys.path:
    sys.path.insert(0, parent_dir)

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("TRIAGE_CONFIG_PATH", os.path.join(parent_dir, "triage_config.yaml"))

from mangum import Mangum
from telcocare.main import app

# Lambda handler for ASGI app; lifespan builds the pipeline on cold start
handler = Mangum(app, lifespan="auto")
