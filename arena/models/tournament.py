from arena.extensions import db
from arena.models.user import gen_uuid, utcnow, isoformat

DRAFT = "draft"
REGISTRATION_OPEN = "registration_open"
LOCKED = "locked"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
TOURNAMENT_STATES = (DRAFT, REGISTRATION_OPEN, LOCKED, IN_PROGRESS, COMPLETED)
TOURNAMENT_FORMATS = ("single_elim", "round_robin")

class Tournament(db.Model):
    __tablename__ = "tournaments"

    id = db.Column(db.String(50), primary_key=True, default=lambda: gen_uuid("trn"))
    title = db.Column(db.String(200), nullable=False)
    game = db.Column(db.String(100))
    format = db.Column(db.String(20), default="single_elim")
    state = db.Column(db.String(30), nullable=False, default=DRAFT, index=True)

    entry_fee_credits = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    slots = db.Column(db.Integer, nullable=True)

    starts_at = db.Column(db.DateTime)
    reg_closes_at = db.Column(db.DateTime)
    rules_md = db.Column(db.Text)
    cover_url = db.Column(db.String(1024))

    created_at = db.Column(db.DateTime, default=utcnow)

    def registration_deadline(self):
        return self.reg_closes_at or self.starts_at

    def to_dict(self, registered_count=None):
        data = {
            "id": self.id,
            "title": self.title,
            "game": self.game,
            "format": self.format,
            "state": self.state,
            "entry_fee_credits": str(self.entry_fee_credits),
            "slots": self.slots,
            "starts_at": isoformat(self.starts_at),
            "reg_closes_at": isoformat(self.reg_closes_at),
            "rules_md": self.rules_md,
            "cover_url": self.cover_url,
            "created_at": isoformat(self.created_at),
        }
        if registered_count is not None:
            data["registered_count"] = registered_count
        return data
