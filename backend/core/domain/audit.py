"""
core.domain.audit — Single entry-point for writing ``AuditLog`` rows.

Services call ``record`` inside the same ``transaction.atomic`` block as
the mutation they describe, so an audit row exists if and only if the
mutation committed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from accounts.models import User
    from core.models import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    CREATE_CASE = "CREATE_CASE"
    PSY_UPDATE_STATUS = "PSY_UPDATE_STATUS"
    PSY_UPLOAD_DOCUMENT = "PSY_UPLOAD_DOCUMENT"
    DIR_VILLAGE_VALIDATE_CASE = "DIR_VILLAGE_VALIDATE_CASE"
    SAUVEGARDE_VALIDATE_CASE = "SAUVEGARDE_VALIDATE_CASE"
    CREATE_USER = "CREATE_USER"
    SET_USER_ACTIVE = "SET_USER_ACTIVE"
    CREATE_VILLAGE = "CREATE_VILLAGE"
    UPDATE_PROFILE = "UPDATE_PROFILE"


def record(
    *,
    actor: User,
    action: str,
    entity: str,
    entity_id: Any,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Append one audit row and return it."""
    from core.models import AuditLog  # lazy import — avoids circular deps

    entry = AuditLog.objects.create(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        metadata=metadata or {},
    )
    logger.info("Audit %s %s#%s by user=%s", action, entity, entity_id, actor.pk)
    return entry
