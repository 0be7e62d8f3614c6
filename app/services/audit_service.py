"""Audit log helpers."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from app.models import AuditLog, User


def log_action(
    db: Session,
    *,
    actor: User | None,
    action_type: str,
    order_id: int | None = None,
    target_user_id: int | None = None,
    before_snapshot: dict[str, Any] | None = None,
    after_snapshot: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit entry; the caller's commit makes it durable with the change."""
    actor_identifier = "system"
    actor_id = None
    if actor is not None:
        actor_id = actor.id
        actor_identifier = actor.email or actor.username

    entry = AuditLog(
        actor_user_id=actor_id,
        actor_identifier=actor_identifier,
        action_type=action_type,
        order_id=order_id,
        target_user_id=target_user_id,
        before_snapshot=before_snapshot,
        after_snapshot=after_snapshot,
    )
    db.add(entry)
    return entry
