from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize Limiter (Configured in app.py via init_app)
# Rendering is CPU-heavy; render routes add their own tighter limits.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "200 per hour"],
    storage_uri="memory://"
)
