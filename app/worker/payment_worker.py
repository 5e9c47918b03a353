import json
import logging
import time

import pika
from sqlalchemy.exc import OperationalError

from core.exceptions import DomainError, NotFoundError
from core.logging_config import setup_logging
from core.settings import settings
from db.session import SessionLocal
from services.payment_service import process_callback

logger = logging.getLogger(__name__)


def connect_with_retry(params: pika.URLParameters, retries: int = 10, delay: int = 5) -> pika.BlockingConnection:
    for attempt in range(1, retries + 1):
        try:
            logger.info("Attempting to connect to RabbitMQ (%d/%d)...", attempt, retries)
            return pika.BlockingConnection(params)
        except pika.exceptions.AMQPConnectionError as e:
            logger.warning("Connection failed: %s. Retrying in %d seconds...", e, delay)
            time.sleep(delay)
    raise RuntimeError("Failed to connect to RabbitMQ after multiple retries.")


def _should_requeue(exc: Exception) -> bool:
    # lost database connections are worth another delivery, anything else is not
    return isinstance(exc, OperationalError)


def process_message(ch, method, properties, body: bytes):
    try:
        payload = json.loads(body)
        payment_id = str(payload["payment_id"])
        status = str(payload["status"])
    except Exception:
        logger.error("Invalid callback message %r. Expected JSON with payment_id and status.", body)
        ch.basic_ack(delivery_tag=method.delivery_tag)
        return

    db = SessionLocal()
    try:
        payment, duplicate = process_callback(
            db,
            payment_id,
            status,
            transaction_id=payload.get("transaction_id"),
            payment_method=payload.get("payment_method"),
            raw=payload,
        )
        ch.basic_ack(delivery_tag=method.delivery_tag)
        logger.info("Callback for %s handled: %s (duplicate=%s)", payment_id, payment.status, duplicate)

    except NotFoundError:
        logger.warning("Payment %s not found. Ack and drop.", payment_id)
        ch.basic_ack(delivery_tag=method.delivery_tag)

    except DomainError as e:
        logger.warning("Callback for %s rejected: %s", payment_id, e.message)
        ch.basic_ack(delivery_tag=method.delivery_tag)

    except Exception as e:
        logger.exception("Error processing callback for %s", payment_id)
        ch.basic_nack(delivery_tag=method.delivery_tag, requeue=_should_requeue(e))

    finally:
        db.close()


def main():
    setup_logging()

    params = pika.URLParameters(settings.rabbitmq_url)
    connection = connect_with_retry(params)
    channel = connection.channel()

    channel.queue_declare(queue=settings.payment_callback_queue, durable=True)
    channel.basic_qos(prefetch_count=1)
    channel.basic_consume(
        queue=settings.payment_callback_queue,
        on_message_callback=process_message,
        auto_ack=False,
    )

    logger.info("Worker started. Waiting for payment callbacks. CTRL+C to exit.")
    channel.start_consuming()


if __name__ == "__main__":
    main()
