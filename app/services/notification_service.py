"""
Outbound notification events.

Rows are added to the caller's session so they commit atomically with the
state change that produced them.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.notification import Notification

logger = logging.getLogger(__name__)


class NotificationService:

    def notify(self, db: Session, user_id: int, type: str, title: str, message: str,
               game_id: Optional[int] = None, tournament_id: Optional[int] = None) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            game_id=game_id,
            tournament_id=tournament_id
        )
        db.add(notification)
        logger.debug(f"Queued {type} notification for player {user_id}")
        return notification

    def list_for_player(self, db: Session, player_id: int, unread_only: bool = False,
                        limit: int = 50) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == player_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.id.desc()).limit(limit).all()


notification_service = NotificationService()
