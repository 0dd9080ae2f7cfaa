from arena.extensions import db
from arena.models.user import gen_uuid, utcnow

class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("ntf"))
    user_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)
    sender_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=True)

    type = db.Column(db.String(50), default="info")
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    details = db.Column(db.JSON, nullable=True)
    is_read = db.Column(db.Boolean, default=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    recipient = db.relationship("User", foreign_keys=[user_id], backref="notifications", lazy=True)
