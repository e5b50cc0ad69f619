# agrimart/services/outbox.py
"""
Best-effort side effects (coin credit on delivery, coin refund on
cancellation) are written as OutboxTask rows in the same transaction as the
state change that causes them, then dispatched right after commit.

A failing handler never fails the request: the task stays pending with a
linear backoff and is picked up again by `flask drain-outbox`. After
OUTBOX_MAX_ATTEMPTS it is dead-lettered and logged at ERROR.
"""
import logging
from datetime import datetime, timedelta

from flask import current_app

from ..extensions import db
from ..model import OutboxTask
from . import coin_service

logger = logging.getLogger(__name__)

CREDIT_COINS = "credit_coins"
REFUND_COINS = "refund_coins"


def _credit_coins(payload: dict):
    coin_service.credit_coins(
        payload["userId"], payload["coins"], payload["orderId"], payload.get("orderType", "OnlineStore")
    )


def _refund_coins(payload: dict):
    coin_service.refund_coins(
        payload["userId"], payload["coins"], payload["orderId"], payload.get("orderType", "OnlineStore"),
        idempotency_key=payload.get("key"),
    )


HANDLERS = {
    CREDIT_COINS: _credit_coins,
    REFUND_COINS: _refund_coins,
}


def enqueue(kind: str, payload: dict) -> OutboxTask:
    if kind not in HANDLERS:
        raise ValueError(f"unknown outbox task kind: {kind}")
    task = OutboxTask(kind=kind, payload=payload, status="pending", attempts=0,
                      next_attempt_at=datetime.utcnow())
    db.session.add(task)
    db.session.flush()
    return task


def dispatch(task_id: int) -> bool:
    """Run one task in its own transaction. Returns True when it completed."""
    task = db.session.get(OutboxTask, task_id)
    if not task or task.status != "pending":
        return False

    kind, payload = task.kind, dict(task.payload or {})
    try:
        HANDLERS[kind](payload)
        task.status = "done"
        task.attempts = (task.attempts or 0) + 1
        task.last_error = None
        db.session.commit()
        logger.info("outbox task %s (%s) done", task_id, kind)
        return True
    except Exception as e:
        db.session.rollback()
        _record_failure(task_id, kind, e)
        return False


def _record_failure(task_id: int, kind: str, error: Exception):
    cfg = current_app.config
    task = db.session.get(OutboxTask, task_id)
    task.attempts = (task.attempts or 0) + 1
    task.last_error = f"{type(error).__name__}: {error}"[:500]
    if task.attempts >= cfg["OUTBOX_MAX_ATTEMPTS"]:
        task.status = "dead"
        logger.error("outbox task %s (%s) dead after %s attempts: %s payload=%s",
                     task_id, kind, task.attempts, task.last_error, task.payload)
    else:
        delay = cfg["OUTBOX_BACKOFF_SECONDS"] * task.attempts
        task.next_attempt_at = datetime.utcnow() + timedelta(seconds=delay)
        logger.warning("outbox task %s (%s) failed (attempt %s), retry in %ss: %s",
                       task_id, kind, task.attempts, delay, task.last_error)
    db.session.commit()


def dispatch_all(task_ids):
    for tid in task_ids:
        dispatch(tid)


def drain(limit: int = 100) -> dict:
    """Dispatch every pending task that is due. Used by `flask drain-outbox`."""
    now = datetime.utcnow()
    ids = [
        tid for (tid,) in db.session.query(OutboxTask.id)
        .filter(OutboxTask.status == "pending", OutboxTask.next_attempt_at <= now)
        .order_by(OutboxTask.id.asc())
        .limit(limit)
        .all()
    ]
    done = sum(1 for tid in ids if dispatch(tid))
    return {"picked": len(ids), "done": done, "failed": len(ids) - done}
