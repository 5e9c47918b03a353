import json
import logging

import pika
from core.settings import settings

logger = logging.getLogger(__name__)


def publish_payment_callback(callback: dict) -> None:
    params = pika.URLParameters(settings.rabbitmq_url)
    conn = pika.BlockingConnection(params)
    try:
        ch = conn.channel()
        ch.queue_declare(queue=settings.payment_callback_queue, durable=True)

        ch.basic_publish(
            exchange="",
            routing_key=settings.payment_callback_queue,
            body=json.dumps(callback).encode("utf-8"),
            properties=pika.BasicProperties(
                delivery_mode=2,
                content_type="application/json",
                message_id=str(callback.get("payment_id")),
            ),
        )
    finally:
        conn.close()

    logger.info("Queued callback for payment %s", callback.get("payment_id"))
