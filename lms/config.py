"""
LMS Assessment Service Configuration
Mongo, auth and certificate settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "lms_db")

# Auth (shared secret with the identity provider)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# Runtime
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Attempt lifecycle
SUBMIT_GRACE_SECONDS = int(os.getenv("SUBMIT_GRACE_SECONDS", "30"))
ATTEMPT_START_RETRIES = int(os.getenv("ATTEMPT_START_RETRIES", "10"))

# Certificates
CERTIFICATE_ISSUER = os.getenv("CERTIFICATE_ISSUER", "LMS Academy")
CERTIFICATE_FONT_DIR = os.getenv("CERTIFICATE_FONT_DIR", "/usr/share/fonts/truetype/dejavu")
