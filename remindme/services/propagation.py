import logging
from typing import Iterable, List, Optional

from remindme.models.sync_event import EntityType, SyncEvent
from remindme.pubsub.hub import Hub
from remindme.push.background import BackgroundTaskPool
from remindme.push.dispatcher import NotificationDispatcher
from remindme.push.payloads import CrossDeviceAction
from remindme.schemas.sync import SyncEventResponse

logger = logging.getLogger(__name__)


def live_event(event: SyncEvent) -> dict:
    """The logged sync event as sent on the live feed; same shape as /sync/changes."""
    return SyncEventResponse.model_validate(event).model_dump(mode="json")


class ChangePropagator:
    """Tells a user's other clients about committed sync events.

    Connected clients get each event on the live hub right away. Devices
    get a silent push from the background pool: a cross-device action per
    reminder for snooze/complete/dismiss/delete, otherwise one sync request.
    """

    def __init__(
        self,
        hub: Hub,
        dispatcher: Optional[NotificationDispatcher] = None,
        background: Optional[BackgroundTaskPool] = None,
    ):
        self.hub = hub
        self.dispatcher = dispatcher
        self.background = background

    def publish(
        self,
        events: Iterable[SyncEvent],
        device_id: Optional[int] = None,
        cross_device_action: Optional[CrossDeviceAction] = None,
        push: bool = True,
    ) -> None:
        events = list(events)
        if not events:
            return

        for event in events:
            message = live_event(event)
            delivered = self.hub.broadcast_to_user(event.user_id, message)
            logger.debug(
                f"Live {message['action']} of {message['entity_type']} {event.entity_id} "
                f"reached {delivered} client(s)"
            )

        if not push or self.dispatcher is None or self.background is None:
            return

        needs_sync: List[int] = []
        for event in events:
            if cross_device_action is not None and event.entity_type == EntityType.REMINDER.value:
                self.background.submit(
                    self.dispatcher.send_cross_device_action,
                    event.user_id,
                    device_id,
                    event.entity_id,
                    cross_device_action,
                )
            elif event.user_id not in needs_sync:
                needs_sync.append(event.user_id)

        for user_id in needs_sync:
            self.background.submit(self.dispatcher.send_sync_notification, user_id, device_id)
