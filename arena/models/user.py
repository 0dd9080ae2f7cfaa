from arena.extensions import db
from datetime import datetime, timezone
import uuid

def gen_uuid(prefix=None):
    uid = str(uuid.uuid4())
    return f"{prefix}-{uid}" if prefix else uid

def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)

def isoformat(value):
    return value.isoformat() + "Z" if value else None

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("usr"))
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(100))
    username = db.Column(db.String(20), unique=True, nullable=True, index=True)
    in_game_name = db.Column(db.String(100), nullable=True)
    role = db.Column(db.String(20), nullable=False, default="player")
    phone = db.Column(db.String(20), nullable=True)
    whatsapp_number = db.Column(db.String(20), nullable=True)
    avatar_url = db.Column(db.String(1024), nullable=True)
    joined_at = db.Column(db.DateTime, default=utcnow)

    def missing_profile_fields(self):
        required = {
            "username": self.username,
            "in_game_name": self.in_game_name,
            "whatsapp_number": self.whatsapp_number,
        }
        return [name for name, value in required.items() if not value]
