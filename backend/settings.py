"""
Server settings read once from the environment (.env supported).
"""

import os

from dotenv import load_dotenv

load_dotenv()

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
# Default class ranking metric: average_marks or total_points
RANK_BY = os.getenv("RANK_BY", "average_marks")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# Comma-separated allowed origins, e.g. http://localhost:5173,https://app.example.com
raw_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")
ALLOWED_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
