"""Fan a notification out to every push target of a user.

Targets are resolved from the device store, one send runs per target on
its own thread, and the call returns once all of them have finished. A
failing device never stops delivery to the others. Tokens the provider
reports as permanently invalid are deleted after the fan-out joins.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from remindme.exceptions import InvalidPushTokenError
from remindme.models.device import Platform
from remindme.push.payloads import (
    CrossDeviceAction,
    CrossDeviceActionData,
    NotificationPayload,
    PushData,
    SyncRequested,
)
from remindme.services.device_service import DeviceService, PushTarget

logger = logging.getLogger(__name__)

Message = Union[NotificationPayload, PushData]


@dataclass
class DispatchResult:
    attempted: int = 0
    delivered: int = 0
    skipped: int = 0
    errors: List[Tuple[PushTarget, Exception]] = field(default_factory=list)
    stale_tokens: List[str] = field(default_factory=list)

    @property
    def first_error(self) -> Optional[Exception]:
        return self.errors[0][1] if self.errors else None

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def all_failed(self) -> bool:
        """Every attempted send failed; nothing reached any device."""
        return self.attempted > 0 and self.delivered == 0


class NotificationDispatcher:
    def __init__(
        self,
        clients: Dict[Platform, object],
        session_factory: Callable[[], Session],
    ):
        # Platforms without a configured client are skipped
        self.clients = {platform: client for platform, client in clients.items() if client}
        self.session_factory = session_factory

    def send_to_user(self, user_id: int, payload: NotificationPayload) -> DispatchResult:
        with self.session_factory() as db:
            targets = DeviceService(db).get_all_push_tokens(user_id)
        return self._fan_out(targets, payload)

    def send_to_user_excluding(
        self, user_id: int, exclude_device_id: Optional[int], payload: NotificationPayload
    ) -> DispatchResult:
        with self.session_factory() as db:
            targets = DeviceService(db).get_push_tokens_excluding(user_id, exclude_device_id)
        return self._fan_out(targets, payload)

    def send_to_device(self, device_id: int, payload: NotificationPayload) -> DispatchResult:
        with self.session_factory() as db:
            target = DeviceService(db).get_device_target(device_id)
        return self._fan_out([target] if target else [], payload)

    def send_cross_device_action(
        self,
        user_id: int,
        exclude_device_id: Optional[int],
        entity_id: int,
        action: CrossDeviceAction,
    ) -> DispatchResult:
        """Tell the user's other devices to drop or update a shown alert."""
        data = CrossDeviceActionData(reminder_id=entity_id, action=CrossDeviceAction(action))
        with self.session_factory() as db:
            targets = DeviceService(db).get_push_tokens_excluding(user_id, exclude_device_id)
        result = self._fan_out(targets, data)
        for target, exc in result.errors:
            logger.warning(
                f"Cross-device {data.action.value} for reminder {entity_id} "
                f"not delivered to {target.platform.value} device: {exc}"
            )
        return result

    def send_sync_notification(
        self, user_id: int, exclude_device_id: Optional[int] = None
    ) -> DispatchResult:
        with self.session_factory() as db:
            targets = DeviceService(db).get_push_tokens_excluding(user_id, exclude_device_id)
        return self._fan_out(targets, SyncRequested())

    def _send_one(self, target: PushTarget, message: Message) -> None:
        client = self.clients[target.platform]
        if isinstance(message, NotificationPayload):
            client.send(target.push_token, message)
        else:
            client.send_silent(target.push_token, message)

    def _fan_out(self, targets: List[PushTarget], message: Message) -> DispatchResult:
        result = DispatchResult()
        deliverable = []
        for target in targets:
            if target.platform in self.clients:
                deliverable.append(target)
            else:
                result.skipped += 1
        if not deliverable:
            return result

        result.attempted = len(deliverable)
        with ThreadPoolExecutor(max_workers=len(deliverable)) as executor:
            futures = [
                (target, executor.submit(self._send_one, target, message))
                for target in deliverable
            ]
            for target, future in futures:
                exc = future.exception()
                if exc is None:
                    result.delivered += 1
                    continue
                result.errors.append((target, exc))
                if isinstance(exc, InvalidPushTokenError):
                    result.stale_tokens.append(target.push_token)
                else:
                    logger.warning(
                        f"Push to {target.platform.value} device failed: {exc}"
                    )

        if result.stale_tokens:
            self._remove_stale_tokens(result.stale_tokens)
        return result

    def _remove_stale_tokens(self, tokens: List[str]) -> None:
        with self.session_factory() as db:
            service = DeviceService(db)
            for token in tokens:
                deleted = service.delete_by_push_token(token)
                logger.info(
                    f"Removed {deleted} device(s) with invalid push token {token[:16]}..."
                )

    def close(self) -> None:
        for client in self.clients.values():
            client.close()
