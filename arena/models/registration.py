from arena.extensions import db
from arena.models.user import gen_uuid, utcnow

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
WITHDRAWN = "withdrawn"
# registrations that hold a slot
ACTIVE_STATUSES = (PENDING, APPROVED)

class Registration(db.Model):
    __tablename__ = "registrations"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("reg"))
    tournament_id = db.Column(db.String(50), db.ForeignKey("tournaments.id"), nullable=False, index=True)
    captain_id = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=False, index=True)

    team_name = db.Column(db.String(100), nullable=False)
    contact_phone = db.Column(db.String(20))
    whatsapp_number = db.Column(db.String(20))
    status = db.Column(db.String(20), nullable=False, default=PENDING)
    transaction_id = db.Column(db.String(50), db.ForeignKey("zcred_transactions.id"), unique=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    tournament = db.relationship("Tournament", backref=db.backref("registrations", lazy="dynamic"))
    captain = db.relationship("User", backref="registrations")

    __table_args__ = (
        db.UniqueConstraint("tournament_id", "captain_id", name="uq_registration_captain"),
    )
