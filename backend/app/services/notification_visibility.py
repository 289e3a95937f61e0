"""
Visibilité et état de lecture des notifications.

is_visible décide pour une notification chargée (détail, lecture) ;
visible_clause exprime les mêmes règles en SQL pour le fil paginé.
La fenêtre de publication (publish_date / expiry_date) est appliquée par la
requête de listing, pas ici : ces deux fonctions ne regardent que l'audience.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, or_

from app.models.notification import Notification
from app.services.access_rules import Actor, Role, is_staff


def is_visible(user: Actor, notification) -> bool:
    if is_staff(user.role):
        return True

    audience = notification.target_audience
    if audience == "all":
        return True
    if audience == "students":
        return user.role == Role.STUDENT
    if audience == "teachers":
        return user.role == Role.TEACHER
    if audience == "specific_class":
        target = notification.target_class_id
        if target is None:
            return False
        if user.role == Role.STUDENT:
            return user.student_class_id == target
        if user.role == Role.TEACHER:
            return target in user.teaching_class_ids
    return False


def visible_clause(user: Actor):
    """Condition SQL équivalente à is_visible ; None quand l'administration voit tout."""
    if is_staff(user.role):
        return None

    audience = Notification.target_audience
    allowed = [audience == "all"]
    if user.role == Role.STUDENT:
        allowed.append(audience == "students")
        if user.student_class_id is not None:
            allowed.append(and_(audience == "specific_class", Notification.target_class_id == user.student_class_id))
    elif user.role == Role.TEACHER:
        allowed.append(audience == "teachers")
        class_ids = list(user.teaching_class_ids)
        if class_ids:
            allowed.append(and_(audience == "specific_class", Notification.target_class_id.in_(class_ids)))
    return or_(*allowed)


def is_read(user_id: uuid.UUID, notification) -> bool:
    return any(read.user_id == user_id for read in notification.reads)


def is_expired(notification, now: Optional[datetime] = None) -> bool:
    now = now or datetime.now()
    return notification.expiry_date is not None and notification.expiry_date < now
