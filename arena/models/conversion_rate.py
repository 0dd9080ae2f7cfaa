from arena.extensions import db
from arena.models.user import utcnow

class ConversionRate(db.Model):
    """PKR per 1 Z-Credit. The row with the latest effective_date is current."""
    __tablename__ = "conversion_rate"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    rate = db.Column(db.Numeric(12, 4), nullable=False)
    effective_date = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    set_by = db.Column(db.String(50), db.ForeignKey("users.id"), nullable=True)
