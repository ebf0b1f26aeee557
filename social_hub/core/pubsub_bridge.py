import asyncio
import logging
import os
from typing import Optional

from google.api_core import exceptions as google_api_exceptions
from google.cloud import pubsub_v1
from pydantic import ValidationError

from social_hub.core.config import settings
from social_hub.core.notification_hub import NotificationHub
from social_hub.schemas import NotificationRead
from social_hub.services.base import NotificationPublisher

logger = logging.getLogger(__name__)


def _configure_emulator():
    # For live deployment, ensure PUBSUB_EMULATOR_HOST environment variable is NOT set.
    if settings.PUBSUB_EMULATOR_HOST:
        os.environ["PUBSUB_EMULATOR_HOST"] = settings.PUBSUB_EMULATOR_HOST
        logger.info(f"Using Pub/Sub emulator at {settings.PUBSUB_EMULATOR_HOST}")


def _project_id() -> Optional[str]:
    return os.getenv("PUBSUB_PROJECT_ID", settings.GCP_PROJECT_ID)


class PubSubNotificationPublisher(NotificationPublisher):
    """
    Publishes inserted notification rows to the shared topic so that every API
    instance can fan them out to its own live surfaces. The recipient id is the
    ordering key, which keeps commit order per recipient.
    """

    def __init__(self, publisher: Optional[pubsub_v1.PublisherClient] = None, topic_name: Optional[str] = None):
        _configure_emulator()
        self.publisher = publisher or pubsub_v1.PublisherClient(
            publisher_options=pubsub_v1.types.PublisherOptions(enable_message_ordering=True)
        )
        self.topic_name = topic_name or settings.NOTIFICATION_TOPIC_NAME
        self.topic_path = self.publisher.topic_path(_project_id(), self.topic_name)

    def ensure_topic(self):
        try:
            self.publisher.create_topic(request={"name": self.topic_path})
            logger.info(f"Pub/Sub topic {self.topic_name} created.")
        except google_api_exceptions.AlreadyExists:
            logger.info(f"Pub/Sub topic {self.topic_name} already exists.")

    async def publish(self, notification: NotificationRead) -> None:
        message_data = notification.model_dump_json().encode("utf-8")
        try:
            future = self.publisher.publish(
                self.topic_path,
                message_data,
                ordering_key=notification.recipient_id,
                recipient_id=notification.recipient_id,
            )
            await asyncio.wrap_future(future)
            logger.info(f"Published notification {notification.id} for recipient {notification.recipient_id}.")
        except google_api_exceptions.GoogleAPICallError as e:
            # The row is already committed; surfaces pick it up on their next snapshot.
            logger.error(f"Error publishing notification {notification.id} to Pub/Sub: {e}")
            self.publisher.resume_publish(self.topic_path, notification.recipient_id)


class PubSubNotificationListener:
    """
    Feeds the local NotificationHub from this instance's subscription to the
    notification topic. Pub/Sub delivers at least once; dispatchers dedupe.
    """

    def __init__(
        self,
        hub: NotificationHub,
        subscriber: Optional[pubsub_v1.SubscriberClient] = None,
        topic_name: Optional[str] = None,
        instance_id: Optional[str] = None,
    ):
        _configure_emulator()
        self.hub = hub
        self.subscriber = subscriber or pubsub_v1.SubscriberClient()
        project_id = _project_id()
        topic_name = topic_name or settings.NOTIFICATION_TOPIC_NAME
        self.subscription_name = f"{topic_name}-subscription-{instance_id or settings.INSTANCE_ID}"
        self.topic_path = self.subscriber.topic_path(project_id, topic_name)
        self.subscription_path = self.subscriber.subscription_path(project_id, self.subscription_name)
        self.future = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def ensure_subscription(self):
        try:
            self.subscriber.create_subscription(
                request={
                    "name": self.subscription_path,
                    "topic": self.topic_path,
                    "enable_message_ordering": True,
                }
            )
            logger.info(f"Pub/Sub subscription {self.subscription_name} created.")
        except google_api_exceptions.AlreadyExists:
            logger.info(f"Pub/Sub subscription {self.subscription_name} already exists.")

    def _callback(self, message):
        # Runs on the Pub/Sub client's thread pool, not the event loop.
        try:
            notification = NotificationRead.model_validate_json(message.data)
        except ValidationError as e:
            logger.error(f"Dropping undecodable notification message {message.message_id}: {e}", exc_info=True)
            message.ack()
            return
        if self.loop is None or self.loop.is_closed():
            logger.error("Event loop not available for notification fan-out.")
            message.nack()
            return
        self.loop.call_soon_threadsafe(self.hub.dispatch, notification)
        message.ack()

    def start(self):
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        if self.future is None or self.future.done():
            self.future = self.subscriber.subscribe(self.subscription_path, callback=self._callback)
            logger.info(f"Pub/Sub notification subscriber started on {self.subscription_path}")

    def stop(self):
        if self.future and not self.future.done():
            self.future.cancel()
        self.subscriber.close()
        logger.info("Pub/Sub notification subscriber stopped.")
