from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# In-memory rate limiter (sufficient for single-instance deployments).
# Toggle with RATELIMIT_ENABLED / DISABLE_RATE_LIMITING in config.
limiter = Limiter(get_remote_address, storage_uri="memory://")
