import logging
from typing import Optional, Any, Dict

from django.contrib.auth import get_user_model

from scheduling.models import AuditEvent

User = get_user_model()
logger = logging.getLogger(__name__)


def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None, using: Optional[str]=None) -> AuditEvent:
    logger.info('audit %s %s:%s by u=%s', action, object_type, object_id, getattr(user, 'id', None))
    return AuditEvent.objects.using(using).create(
        user=user if isinstance(user, User) and getattr(user, 'id', None) else None,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )
