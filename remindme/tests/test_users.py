from datetime import timedelta

from remindme.jobs.account_purge_job import purge_deleted_accounts
from remindme.jobs.notification_job import NotificationJob
from remindme.models.device import Device
from remindme.models.reminder import Reminder
from remindme.models.reminder_list import ReminderList
from remindme.models.sync_event import SyncEvent
from remindme.models.user import User
from remindme.utils.time_utils import utc_now


def test_get_me(client, make_user, auth_headers):
    user = make_user("me@example.com")

    res = client.get("/users/me", headers=auth_headers(user))

    assert res.status_code == 200
    assert res.json()["email"] == "me@example.com"
    assert res.json()["deleted_at"] is None


def test_deleted_account_is_locked_until_restored(client, db_session, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    gone = client.post("/reminders/", headers=headers, json={"title": "Deleted earlier"}).json()
    client.delete(f"/reminders/{gone['id']}", headers=headers)
    kept = client.post("/reminders/", headers=headers, json={"title": "Keep me"}).json()
    client.post("/lists/", headers=headers, json={"name": "Home"})

    assert client.delete("/users/me", headers=headers).status_code == 204

    assert client.get("/reminders/", headers=headers).status_code == 403
    assert client.get("/users/me", headers=headers).status_code == 403
    db_session.expire_all()
    assert db_session.query(Reminder).filter(Reminder.deleted_at.is_(None)).count() == 0
    assert db_session.query(ReminderList).filter(ReminderList.deleted_at.is_(None)).count() == 0

    restored = client.post("/users/me/restore", headers=headers)
    assert restored.status_code == 200
    assert restored.json()["deleted_at"] is None

    titles = [r["title"] for r in client.get("/reminders/", headers=headers).json()["reminders"]]
    assert titles == ["Keep me"]
    assert client.get(f"/reminders/{kept['id']}", headers=headers).status_code == 200
    names = {item["name"] for item in client.get("/lists/", headers=headers).json()}
    assert "Home" in names


def test_restore_requires_a_deleted_account(client, make_user, auth_headers):
    user = make_user()
    assert client.post("/users/me/restore", headers=auth_headers(user)).status_code == 400


def test_deleted_account_gets_no_notifications(
    client, session_factory, dispatcher, fake_clients, make_user, make_device, auth_headers
):
    user = make_user()
    make_device(user, "phone", "phone-token")
    headers = auth_headers(user)
    due = (utc_now() - timedelta(minutes=1)).isoformat()
    client.post("/reminders/", headers=headers, json={"title": "Call mum", "due_at": due})

    client.delete("/users/me", headers=headers)
    result = NotificationJob(session_factory, dispatcher).process_due_reminders()

    assert result.processed == 0
    assert all(not c.sent for c in fake_clients.values())


def test_purge_removes_only_expired_deletions(
    db_session, session_factory, make_user, make_device
):
    expired = make_user("expired@example.com")
    recent = make_user("recent@example.com")
    active = make_user("active@example.com")
    for user in (expired, recent, active):
        make_device(user, f"device-{user.id}", f"token-{user.id}")
        db_session.add(Reminder(user_id=user.id, title="Something"))
        db_session.add(ReminderList(user_id=user.id, name="List"))
        db_session.add(
            SyncEvent(user_id=user.id, entity_type="reminder", entity_id=1, action="create")
        )
    expired.deleted_at = utc_now() - timedelta(days=40)
    recent.deleted_at = utc_now() - timedelta(days=5)
    db_session.commit()
    expired_id = expired.id

    purged = purge_deleted_accounts(session_factory, days=30)

    assert purged == 1
    db_session.expire_all()
    assert {u.email for u in db_session.query(User)} == {
        "recent@example.com",
        "active@example.com",
    }
    for model in (Reminder, ReminderList, Device, SyncEvent):
        assert db_session.query(model).filter(model.user_id == expired_id).count() == 0
        assert db_session.query(model).count() == 2


def test_purge_stops_at_deadline(db_session, session_factory, make_user):
    user = make_user()
    user.deleted_at = utc_now() - timedelta(days=40)
    db_session.commit()

    assert purge_deleted_accounts(session_factory, days=30, deadline=utc_now()) == 0
    db_session.expire_all()
    assert db_session.query(User).count() == 1
