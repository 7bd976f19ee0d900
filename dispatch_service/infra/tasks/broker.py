"""Taskiq broker for notification delivery jobs.

RabbitMQ (taskiq-aio-pika) is used when ``RABBIT_ENABLED`` is set; otherwise
an in-memory broker runs tasks inside the API process, which is enough for
local development and single-instance deployments.

Retries:
    BackoffRetryMiddleware honours the per-message labels the dispatch queue
    sets (``retry_on_error``, ``max_retries``, ``retry_delay``). The first
    attempt carries no ``delay`` label, so it is published straight to the
    work queue; retry N waits ``retry_delay * 2 ** (N - 1)`` seconds plus
    jitter, capped at 60s. On RabbitMQ the wait goes through the ``.delay``
    queue. The in-memory broker ignores ``delay``, so in-process retries run
    back to back.

Run a worker against RabbitMQ:
    taskiq worker dispatch_service.infra.tasks.broker:broker

Tasks are registered by the imports at the bottom of this module.
"""

from __future__ import annotations

import logging
import random

from taskiq import AsyncBroker, InMemoryBroker, TaskiqMessage
from taskiq.middlewares import SmartRetryMiddleware

from dispatch_service.core.settings import get_notification_settings, get_rabbit_settings
from dispatch_service.infra.logging.config import setup_logging

logger = logging.getLogger(__name__)

rabbit_settings = get_rabbit_settings()
notification_settings = get_notification_settings()
setup_logging()


class BackoffRetryMiddleware(SmartRetryMiddleware):
    """SmartRetryMiddleware with doubling delays.

    The base delay comes from the message's ``retry_delay`` label, falling
    back to ``default_delay``. The ``delay`` label is left for the broker:
    taskiq-aio-pika routes any message carrying it through the delay queue.
    """

    def make_delay(self, message: TaskiqMessage, retries: int) -> float:
        base = float(message.labels.get("retry_delay", self.default_delay))
        delay = min(base * 2 ** (retries - 1), self.max_delay_exponent)
        if self.use_jitter:
            delay += random.random()  # noqa: S311
        return delay


def _retry_middleware() -> SmartRetryMiddleware:
    return BackoffRetryMiddleware(
        default_retry_count=notification_settings.queue_max_attempts,
        default_delay=notification_settings.queue_backoff_initial_ms / 1000,
        use_jitter=True,
        max_delay_exponent=60,
    )


def _create_broker() -> AsyncBroker:
    if rabbit_settings.is_configured:
        from taskiq_aio_pika import AioPikaBroker

        queue_name = rabbit_settings.get_prefixed_queue("notifications")
        rabbit_broker = AioPikaBroker(
            url=rabbit_settings.url,
            queue_name=queue_name,
            max_priority=rabbit_settings.max_priority,
            declare_exchange=True,
            declare_queues=True,
        ).with_middlewares(_retry_middleware())

        logger.info(
            "Taskiq RabbitMQ broker configured",
            extra={
                "queue": queue_name,
                "max_priority": rabbit_settings.max_priority,
                "operation": "broker.create",
            },
        )
        return rabbit_broker

    logger.warning(
        "RabbitMQ not configured - delivery jobs run in-process",
        extra={"operation": "broker.create"},
    )
    return InMemoryBroker().with_middlewares(_retry_middleware())


broker: AsyncBroker = _create_broker()


async def start_taskiq() -> None:
    """Start the broker for enqueuing from the API process.

    Raises:
        ConnectionError: If RabbitMQ is unreachable.
    """
    logger.info("Starting Taskiq broker")
    try:
        await broker.startup()
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise
    logger.info("Taskiq broker started successfully")


async def stop_taskiq() -> None:
    """Stop the broker, closing its connections."""
    logger.info("Stopping Taskiq broker")
    try:
        await broker.shutdown()
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})


# Register task modules with the broker (the worker imports only this module)
import dispatch_service.workers.notifications.tasks  # noqa: E402, F401
