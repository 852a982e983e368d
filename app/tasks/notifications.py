import json
import logging

from app.celery_app import celery_app
from app.config import settings

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.notifications.dispatch_notification",
    ignore_result=True,
    bind=True,
    max_retries=5,
    default_retry_delay=10,
)
def dispatch_notification(
    self: "celery_app.Task",  # type: ignore[name-defined]
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None = None,
    matter_id: str | None = None,
    payload: dict | None = None,
) -> None:
    """POST an event to the notification collaborator.

    Delivery is best-effort; failures are retried with backoff and finally
    logged. The mutation that produced the event is already committed.
    """
    body = _build_body(event_type, entity_type, entity_id, actor_id, matter_id, payload)
    if not _deliver(body):
        try:
            self.retry(countdown=10 * (2 ** (self.request.retries or 0)))
        except self.MaxRetriesExceededError:
            logger.error(
                "Notification for %s on matter %s exhausted retries",
                event_type,
                matter_id,
            )


def _build_body(
    event_type: str,
    entity_type: str,
    entity_id: str,
    actor_id: str | None,
    matter_id: str | None,
    payload: dict | None,
) -> dict:
    return {
        "event_type": event_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "actor_id": actor_id,
        "matter_id": matter_id,
        "title": event_type.replace(".", " ").replace("_", " ").title(),
        "payload": payload or {},
    }


def _deliver(body: dict) -> bool:
    """Send one notification; True when delivered or when no hook is configured."""
    import httpx

    url = settings.notification_webhook_url
    if not url:
        logger.info("No notification hook configured; dropping %s", body["event_type"])
        return True
    try:
        with httpx.Client(timeout=settings.notification_timeout_seconds) as client:
            resp = client.post(
                url,
                content=json.dumps(body, default=str),
                headers={"Content-Type": "application/json"},
            )
        resp.raise_for_status()
    except (httpx.HTTPError, OSError) as e:
        logger.warning("Notification delivery for %s failed: %s", body["event_type"], e)
        return False
    logger.info("Delivered notification %s for matter %s", body["event_type"], body["matter_id"])
    return True
