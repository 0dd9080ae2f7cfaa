"""Extension instances, bound to the app in ``create_app``."""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_marshmallow import Marshmallow
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_bcrypt import Bcrypt

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
ma = Marshmallow()
cors = CORS()
bcrypt = Bcrypt()
# default limits come from RATELIMIT_DEFAULT; wallet submissions add their own per-user limit
limiter = Limiter(key_func=get_remote_address)
