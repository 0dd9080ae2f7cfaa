from arena.extensions import db
from arena.models.user import utcnow

class TokenBlocklist(db.Model):
    """JWT ids revoked at sign-out."""
    __tablename__ = "token_blocklist"

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), nullable=False, unique=True, index=True)
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
