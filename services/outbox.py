# services/outbox.py
"""
Completion events are written to outbox_events in the same transaction as
the session update, then pushed to the stats consumer over HTTP.
A failed push never fails the caller; the event stays pending for
dispatch_pending() to retry.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from db import SessionLocal, utcnow
from models import OutboxEvent

logger = logging.getLogger("quizplay.outbox")

TOPIC_SESSION_COMPLETED = "session.completed"
MAX_ATTEMPTS = 5

STATUS_PENDING = "pending"
STATUS_DELIVERED = "delivered"
STATUS_DEAD = "dead"


def enqueue(db: Session, topic: str, payload: Dict[str, Any]) -> OutboxEvent:
    event = OutboxEvent(topic=topic, payload=payload, status=STATUS_PENDING, attempts=0)
    db.add(event)
    return event


def degraded_progress(payload: Dict[str, Any]) -> Dict[str, Any]:
    """What the caller sees when the stats consumer could not be reached."""
    return {
        "points_earned": payload.get("score", 0),
        "bonus_points": 0,
        "level_up": False,
        "new_level": None,
        "new_achievements": [],
        "recorded": False,
    }


class StatsNotifier:
    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.base_url = (base_url or os.getenv("STATS_SERVICE_URL", "http://localhost:8000")).rstrip("/")
        self.api_key = api_key if api_key is not None else os.getenv("SERVICE_API_KEY", "")
        self.timeout = timeout if timeout is not None else float(os.getenv("STATS_TIMEOUT_SECONDS", "5"))
        self.transport = transport
        self.session_factory = session_factory

    # --- HTTP -------------------------------------------------------------------

    def post_completion(
        self, payload: Dict[str, Any], authorization: Optional[str] = None
    ) -> Dict[str, Any]:
        headers = {}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        if authorization:
            headers["Authorization"] = authorization

        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.post(f"{self.base_url}/stats/quiz-completed", json=payload, headers=headers)
        r.raise_for_status()
        body = r.json()
        progress = body.get("progress") if isinstance(body, dict) else None
        if not isinstance(progress, dict):
            raise ValueError("stats response is missing 'progress'")
        progress.setdefault("recorded", True)
        return progress

    # --- Delivery ---------------------------------------------------------------

    def deliver(self, event_id: int, authorization: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Push one pending event. Returns the consumer's progress payload, or
        None if the event could not be delivered (it stays pending).
        """
        # read and release the connection before going over the network
        with self.session_factory() as db:
            event = db.get(OutboxEvent, event_id)
            if event is None or event.status != STATUS_PENDING:
                return None
            payload = dict(event.payload)

        try:
            progress = self.post_completion(payload, authorization)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "stats notification failed for event %s: %s: %s", event_id, type(e).__name__, e
            )
            self._record_failure(event_id, f"{type(e).__name__}: {e}")
            return None

        self._record_success(event_id)
        return progress

    def dispatch_pending(self, limit: int = 50) -> Dict[str, int]:
        with self.session_factory() as db:
            ids = list(
                db.scalars(
                    select(OutboxEvent.id)
                    .where(OutboxEvent.status == STATUS_PENDING)
                    .order_by(OutboxEvent.id)
                    .limit(limit)
                )
            )

        delivered = 0
        for event_id in ids:
            if self.deliver(event_id) is not None:
                delivered += 1

        with self.session_factory() as db:
            dead = sum(
                1
                for e in db.scalars(select(OutboxEvent).where(OutboxEvent.id.in_(ids)))
                if e.status == STATUS_DEAD
            )
        return {"attempted": len(ids), "delivered": delivered, "dead": dead}

    def _record_success(self, event_id: int) -> None:
        with self.session_factory() as db:
            event = db.get(OutboxEvent, event_id)
            event.attempts += 1
            event.status = STATUS_DELIVERED
            event.delivered_at = utcnow()
            event.last_error = None
            db.commit()

    def _record_failure(self, event_id: int, error: str) -> None:
        with self.session_factory() as db:
            event = db.get(OutboxEvent, event_id)
            event.attempts += 1
            event.last_error = error[:1000]
            if event.attempts >= MAX_ATTEMPTS:
                event.status = STATUS_DEAD
                logger.error("giving up on event %s after %s attempts", event_id, event.attempts)
            db.commit()


def get_notifier() -> StatsNotifier:
    return StatsNotifier()
