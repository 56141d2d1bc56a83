"""
Dramatiq broker configuration.

Redis-based message broker for the task queue. The test environment uses
an in-memory stub broker.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.brokers.stub import StubBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from payout_engine.config.settings import settings

if settings.environment == "test":
    broker = StubBroker()
    broker.emit_after("process_boot")
else:
    broker = RedisBroker(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password if settings.redis_password else None,
        db=settings.redis_db,
    )

# ShutdownNotifications: lets workers stop between messages
# CurrentMessage: exposes the message being processed to actors
# Retries: exponential backoff for failed tasks
broker.add_middleware(ShutdownNotifications())
broker.add_middleware(CurrentMessage())
broker.add_middleware(
    Retries(
        max_retries=3,
        min_backoff=1000,  # 1 second
        max_backoff=60000,  # 1 minute
    )
)

dramatiq.set_broker(broker)

logger.info(
    f"Dramatiq broker initialized: {type(broker).__name__} "
    f"(redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db})"
)
