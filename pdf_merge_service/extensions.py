"""Flask extensions shared by the application factory and the routes."""
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

cors = CORS()

# Disabled unless RATELIMIT_ENABLED is set; see Config
limiter = Limiter(get_remote_address)
