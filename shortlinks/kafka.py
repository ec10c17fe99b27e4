"""Kafka producer management for link events."""

from aiokafka import AIOKafkaProducer

from shortlinks.config import get_settings
from shortlinks.schemas import LinkEvent

__all__ = ["close_kafka", "init_kafka", "publish_link_event"]

settings = get_settings()

_producer: AIOKafkaProducer | None = None


async def init_kafka() -> None:
    global _producer
    if _producer is not None:
        return

    producer = AIOKafkaProducer(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        value_serializer=lambda payload: payload.encode("utf-8"),
    )
    try:
        await producer.start()
        _producer = producer
    except Exception:
        await producer.stop()
        _producer = None


async def close_kafka() -> None:
    global _producer
    if _producer is None:
        return
    await _producer.stop()
    _producer = None


async def publish_link_event(event: LinkEvent) -> bool:
    if _producer is None:
        return False

    key = str(event.link_id or event.owner_id)
    await _producer.send_and_wait(
        settings.KAFKA_LINK_EVENTS_TOPIC,
        event.model_dump_json(),
        key=key.encode("utf-8"),
    )
    return True
