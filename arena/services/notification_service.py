"""In-app notifications for wallet and tournament outcomes."""
from arena.extensions import db
from arena.models.notification import Notification
from arena.utils.exceptions import NotFoundError

def get_user_notifications(user_id, is_read=None):
    q = Notification.query.filter_by(user_id=user_id)
    if is_read is not None:
        q = q.filter_by(is_read=is_read)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc())

def unread_count(user_id):
    return Notification.query.filter_by(user_id=user_id, is_read=False).count()

def mark_notification_read(user_id, notification_id):
    notif = db.session.get(Notification, notification_id)
    # other users' notifications look missing
    if not notif or notif.user_id != user_id:
        raise NotFoundError("Notification not found")
    if not notif.is_read:
        notif.is_read = True
        db.session.commit()
    return notif

def mark_all_read_for_user(user_id):
    updated = (
        Notification.query
        .filter_by(user_id=user_id, is_read=False)
        .update({"is_read": True}, synchronize_session=False)
    )
    db.session.commit()
    return updated

def notify_user(
    user_id: str,
    title: str,
    message: str,
    notif_type="info",
    details=None,
    sender_id=None
):
    """Stage a notification; it is committed with the caller's transaction."""
    notif = Notification(
        user_id=user_id,
        sender_id=sender_id,
        type=notif_type,
        title=title,
        message=message,
        details=details,
    )
    db.session.add(notif)
    return notif
