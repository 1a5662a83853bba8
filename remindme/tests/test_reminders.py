import logging
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm.exc import StaleDataError

from remindme.models.device import Platform
from remindme.models.reminder import Reminder
from remindme.models.sync_event import SyncEvent
from remindme.push.payloads import CrossDeviceAction, CrossDeviceActionData, SyncRequested
from remindme.schemas.reminder import ReminderCreate, ReminderUpdate
from remindme.services.reminder_service import ReminderService
from remindme.services.sync_service import SyncService
from remindme.utils.time_utils import as_utc, utc_now


def _create(client, headers, **fields):
    body = {"title": "Pay rent", **fields}
    res = client.post("/reminders/", headers=headers, json=body)
    assert res.status_code in (200, 201), res.text
    return res.json()


def _events(db, reminder_id):
    db.expire_all()
    return (
        db.query(SyncEvent)
        .filter(SyncEvent.entity_id == reminder_id, SyncEvent.entity_type == "reminder")
        .order_by(SyncEvent.id)
        .all()
    )


def test_create_get_and_list(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    due = (utc_now() + timedelta(hours=2)).replace(microsecond=0)

    created = _create(client, headers, due_at=due.isoformat(), priority=3)
    assert created["status"] == "active"
    assert created["version"] == 1
    assert created["notification_sent_at"] is None

    fetched = client.get(f"/reminders/{created['id']}", headers=headers).json()
    assert fetched["title"] == "Pay rent"
    assert datetime.fromisoformat(fetched["due_at"].replace("Z", "+00:00")) == due

    _create(client, headers, title="Someday")
    page = client.get("/reminders/", headers=headers).json()
    assert page["total"] == 2
    # Undated reminders sort last
    assert [r["title"] for r in page["reminders"]] == ["Pay rent", "Someday"]

    assert [e.action for e in _events(db_session, created["id"])] == ["create"]


def test_reminders_are_private(client, make_user, auth_headers):
    alice = make_user("alice@example.com")
    bob = make_user("bob@example.com")
    created = _create(client, auth_headers(alice))

    res = client.get(f"/reminders/{created['id']}", headers=auth_headers(bob))
    assert res.status_code == 404


def test_create_is_idempotent_on_local_id(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    first = client.post("/reminders/", headers=headers, json={"title": "A", "local_id": "L1"})
    retry = client.post("/reminders/", headers=headers, json={"title": "A", "local_id": "L1"})

    assert first.status_code == 201
    assert retry.status_code == 200
    assert retry.json()["id"] == first.json()["id"]
    assert db_session.query(Reminder).count() == 1


def test_update_bumps_version_and_checks_expected_version(
    client, db_session, make_user, auth_headers
):
    user = make_user()
    headers = auth_headers(user)
    created = _create(client, headers)

    res = client.patch(
        f"/reminders/{created['id']}",
        headers=headers,
        json={"title": "Pay rent today", "expected_version": 1},
    )
    assert res.status_code == 200
    assert res.json()["version"] == 2

    stale = client.patch(
        f"/reminders/{created['id']}",
        headers=headers,
        json={"title": "Lost update", "expected_version": 1},
    )
    assert stale.status_code == 409
    assert [e.action for e in _events(db_session, created["id"])] == ["create", "update"]


def test_changing_due_at_rearms_notification(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    due = utc_now() - timedelta(minutes=5)
    created = _create(client, headers, due_at=due.isoformat())

    db_session.query(Reminder).filter(Reminder.id == created["id"]).update(
        {Reminder.notification_sent_at: utc_now()}, synchronize_session=False
    )
    db_session.commit()

    # Same instant: guard stays
    client.patch(f"/reminders/{created['id']}", headers=headers, json={"due_at": due.isoformat()})
    db_session.expire_all()
    assert db_session.get(Reminder, created["id"]).notification_sent_at is not None

    later = (utc_now() + timedelta(hours=1)).isoformat()
    res = client.patch(f"/reminders/{created['id']}", headers=headers, json={"due_at": later})
    assert res.json()["notification_sent_at"] is None


def test_snooze_complete_dismiss(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    created = _create(client, headers, due_at=utc_now().isoformat())

    before = utc_now()
    snoozed = client.post(
        f"/reminders/{created['id']}/snooze", headers=headers, json={"minutes": 15}
    ).json()
    due = as_utc(datetime.fromisoformat(snoozed["due_at"].replace("Z", "+00:00")))
    assert before + timedelta(minutes=15) <= due <= utc_now() + timedelta(minutes=15)
    assert snoozed["snooze_count"] == 1
    assert snoozed["status"] == "active"

    completed = client.post(f"/reminders/{created['id']}/complete", headers=headers).json()
    assert completed["status"] == "completed"
    assert completed["completed_at"] is not None

    dismissed = client.post(f"/reminders/{created['id']}/dismiss", headers=headers).json()
    assert dismissed["status"] == "dismissed"


def test_snooze_requires_positive_minutes(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    created = _create(client, headers)
    res = client.post(f"/reminders/{created['id']}/snooze", headers=headers, json={"minutes": 0})
    assert res.status_code == 422


def test_delete_is_soft_and_logged(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    created = _create(client, headers)

    assert client.delete(f"/reminders/{created['id']}", headers=headers).status_code == 204
    assert client.get(f"/reminders/{created['id']}", headers=headers).status_code == 404

    db_session.expire_all()
    assert db_session.get(Reminder, created["id"]).deleted_at is not None
    events = _events(db_session, created["id"])
    assert events[-1].action == "delete"
    assert events[-1].payload["deleted_at"] is not None


def test_failed_sync_append_rolls_back_mutation(
    client, db_session, make_user, auth_headers, monkeypatch
):
    user = make_user()
    headers = auth_headers(user)

    def broken_record_change(self, *args, **kwargs):
        raise RuntimeError("sync log unavailable")

    monkeypatch.setattr(SyncService, "record_change", broken_record_change)

    with pytest.raises(RuntimeError):
        client.post("/reminders/", headers=headers, json={"title": "Never stored"})
    assert db_session.query(Reminder).count() == 0


def test_mutations_reach_live_subscribers(client, live_state, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    with live_state.hub.subscribe(user.id) as channel:
        created = _create(client, headers)
        client.post(f"/reminders/{created['id']}/complete", headers=headers)

        first = channel.get_nowait()
        second = channel.get_nowait()

    assert first["action"] == "create" and first["entity_id"] == created["id"]
    assert second["action"] == "update"
    assert second["payload"]["status"] == "completed"


def test_actions_push_to_other_devices(
    client, with_dispatcher, fake_clients, make_user, make_device, auth_headers
):
    user = make_user()
    phone = make_device(user, "phone", "phone-token")
    make_device(user, "watch", "watch-token")
    headers = auth_headers(user, device_id=phone.id)
    created = _create(client, headers)

    client.post(f"/reminders/{created['id']}/complete", headers=headers)

    silent = fake_clients[Platform.IOS].silent
    assert all(token == "watch-token" for token, _ in silent)
    assert isinstance(silent[0][1], SyncRequested)
    action = silent[1][1]
    assert isinstance(action, CrossDeviceActionData)
    assert action.action == CrossDeviceAction.COMPLETE
    assert action.reminder_id == created["id"]


def test_list_filters(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    soon = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)
    _create(client, headers, title="May", due_at=soon.isoformat())
    _create(client, headers, title="June", due_at=(soon + timedelta(days=31)).isoformat())
    done = _create(client, headers, title="Done")
    client.post(f"/reminders/{done['id']}/complete", headers=headers)

    active = client.get("/reminders/", headers=headers, params={"status": "active"}).json()
    assert {r["title"] for r in active["reminders"]} == {"May", "June"}

    may = client.get(
        "/reminders/",
        headers=headers,
        params={"from_date": "2026-05-01T00:00:00Z", "to_date": "2026-05-31T00:00:00Z"},
    ).json()
    assert [r["title"] for r in may["reminders"]] == ["May"]


def test_recurrence_and_tags_are_kept(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    rule = {"frequency": "weekly", "interval": 2, "days_of_week": [1, 3]}

    created = _create(
        client,
        headers,
        recurrence_rule=rule,
        recurrence_end="2027-01-01T00:00:00Z",
        tags=["health", "morning"],
    )

    assert created["recurrence_rule"]["frequency"] == "weekly"
    assert created["recurrence_rule"]["days_of_week"] == [1, 3]
    assert created["recurrence_end"].startswith("2027-01-01T00:00:00")
    assert created["tags"] == ["health", "morning"]
    snapshot = _events(db_session, created["id"])[0].payload
    assert snapshot["recurrence_rule"]["interval"] == 2
    assert snapshot["tags"] == ["health", "morning"]

    updated = client.patch(
        f"/reminders/{created['id']}",
        headers=headers,
        json={"recurrence_rule": None, "tags": ["evening"]},
    ).json()
    assert updated["recurrence_rule"] is None
    assert updated["tags"] == ["evening"]

    plain = _create(client, headers, title="Once")
    assert plain["tags"] == []
    assert plain["recurrence_rule"] is None


def test_invalid_recurrence_is_rejected(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    for rule in ({"frequency": "fortnightly"}, {"frequency": "weekly", "days_of_week": [7]}):
        res = client.post("/reminders/", headers=headers, json={"title": "x", "recurrence_rule": rule})
        assert res.status_code == 422


def test_version_conflict_is_not_logged_as_error(
    db_session, session_factory, make_user, caplog
):
    user = make_user()
    service = ReminderService(db_session)
    reminder, _ = service.create_reminder(user.id, ReminderCreate(title="Original"))

    # Another writer moves the row on behind this session's back
    with session_factory() as other:
        ReminderService(other).update_reminder(
            user.id, reminder.id, ReminderUpdate(title="Theirs")
        )

    with caplog.at_level(logging.INFO, logger="remindme.services.reminder_service"):
        with pytest.raises(StaleDataError):
            service.update_reminder(user.id, reminder.id, ReminderUpdate(title="Mine"))

    records = [r for r in caplog.records if r.name == "remindme.services.reminder_service"]
    assert [r.levelno for r in records] == [logging.INFO]
    assert "Version conflict" in records[0].getMessage()
    assert len(service.events) == 1


def test_live_events_match_the_sync_log(client, db_session, live_state, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    with live_state.hub.subscribe(user.id) as channel:
        created = _create(client, headers)
        live = channel.get_nowait()

    logged = client.get("/sync/changes", headers=headers).json()["changes"][0]
    assert logged["entity_id"] == created["id"]
    assert live == logged
