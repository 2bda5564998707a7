from unittest.mock import AsyncMock

from conftest import TICKET_DATA, bearer, run
from supportdesk.realtime import ADMIN_CHANNEL
from supportdesk.services import tickets
from supportdesk.services.notifications import STATUS_CHANGED, TicketEvent


def _notifications(mock_db, **query):
    return run(mock_db["notifications"].find(query).to_list(length=None))


def _emits(socket_server, event):
    return [c for c in socket_server.emit.await_args_list if c.args[0] == event]


def test_ticket_created_notifies_owner_and_admins(client, admin, mock_db, mailer):
    client.post("/api/tickets", json=TICKET_DATA)

    owner = _notifications(mock_db, userEmail="a@x.com")
    assert [n["type"] for n in owner] == ["ticket_created"]
    assert owner[0]["ticketNumber"] == "TSK-1001"
    assert owner[0]["isRead"] is False

    admins = _notifications(mock_db, userEmail=admin["email"])
    assert len(admins) == 1
    assert admins[0]["title"] == "New Ticket: TSK-1001"

    mailer.send.assert_awaited_once()
    assert mailer.send.await_args.args[:2] == ("a@x.com", "ticketCreated")


def test_push_reaches_owner_channel_with_unread_count(client, admin, socket_server):
    client.post("/api/tickets", json=TICKET_DATA)

    pushes = [c for c in _emits(socket_server, "notification") if c.kwargs["room"] == "a@x.com"]
    assert len(pushes) == 1
    payload = pushes[0].args[1]
    assert payload["unreadCount"] == 1
    assert payload["notification"]["type"] == "ticket_created"
    assert payload["notification"]["ticket"]["ticketId"] == "TSK-1001"

    broadcasts = _emits(socket_server, "admin_notification")
    assert len(broadcasts) == 1
    assert broadcasts[0].kwargs["room"] == ADMIN_CHANNEL
    assert broadcasts[0].args[1]["type"] == "new_ticket"
    assert broadcasts[0].args[1]["ticket"]["ticketId"] == "TSK-1001"


def test_status_change_by_developer_also_notifies_admins(client, admin, developer, make_ticket, mock_db):
    ticket = make_ticket()
    run(tickets.assign(mock_db, ticket, str(developer["_id"]), admin))

    client.put(f"/api/tickets/{ticket['_id']}/status", json={"status": "Completed"}, headers=bearer(developer))

    owner = _notifications(mock_db, userEmail="a@x.com", type="status_change")
    assert len(owner) == 1
    assert owner[0]["metadata"]["oldStatus"] == "In Progress"
    assert owner[0]["metadata"]["newStatus"] == "Completed"
    assert len(_notifications(mock_db, userEmail=admin["email"], type="status_change")) == 1


def test_status_change_by_admin_does_not_notify_admins(client, admin, make_ticket, mock_db):
    ticket = make_ticket()

    client.put(f"/api/tickets/{ticket['_id']}/status", json={"status": "Done"}, headers=bearer(admin))

    assert len(_notifications(mock_db, userEmail="a@x.com", type="status_change")) == 1
    assert _notifications(mock_db, userEmail=admin["email"]) == []


def test_assignment_notifies_owner_and_developer(client, admin, developer, make_ticket, mock_db):
    ticket = make_ticket()

    client.put(
        f"/api/tickets/{ticket['_id']}/assign",
        json={"developerId": str(developer["_id"])},
        headers=bearer(admin),
    )

    owner = _notifications(mock_db, userEmail="a@x.com")
    assert sorted(n["type"] for n in owner) == ["status_change", "ticket_assigned"]
    dev = _notifications(mock_db, userEmail=developer["email"])
    assert [n["type"] for n in dev] == ["ticket_assigned"]
    assert dev[0]["title"] == f"New Ticket Assigned: {ticket['ticketId']}"


def test_fan_out_failures_do_not_fail_the_ticket_write(client, mock_db, socket_server, mailer):
    socket_server.emit.side_effect = RuntimeError("socket down")
    mailer.send.side_effect = RuntimeError("smtp down")

    res = client.post("/api/tickets", json=TICKET_DATA)

    assert res.status_code == 201
    assert run(mock_db["tickets"].count_documents({})) == 1
    # the row is still written when push and email fail
    assert len(_notifications(mock_db, userEmail="a@x.com")) == 1


def test_dispatch_swallows_errors(notifier, make_ticket):
    ticket = make_ticket()
    notifier.db = None  # every sink that touches the database now fails

    run(notifier.dispatch(TicketEvent(STATUS_CHANGED, ticket, old_status="TO DO", new_status="Done")))


def test_inbox_and_unread_count(client, end_user, make_ticket, mock_db):
    make_ticket(userEmail=end_user["email"])
    client.post("/api/tickets", json={**TICKET_DATA, "userEmail": end_user["email"]})

    data = client.get("/api/notifications", headers=bearer(end_user)).json()["data"]

    assert data["unreadCount"] == 1
    assert data["notifications"][0]["ticket"]["ticketId"] == "TSK-1002"


def test_guest_inbox_by_email(client):
    client.post("/api/tickets", json=TICKET_DATA)

    data = client.get("/api/notifications/email/A@X.com").json()["data"]

    assert len(data["notifications"]) == 1
    assert data["unreadCount"] == 1


def test_mark_read_is_idempotent(client, end_user, mock_db):
    client.post("/api/tickets", json={**TICKET_DATA, "userEmail": end_user["email"]})
    notification = _notifications(mock_db, userEmail=end_user["email"])[0]

    for _ in range(2):
        res = client.put(f"/api/notifications/{notification['_id']}/read", headers=bearer(end_user))
        assert res.status_code == 200
        assert res.json()["data"]["notification"]["isRead"] is True


def test_mark_read_only_own_notifications(client, end_user, developer, mock_db):
    client.post("/api/tickets", json={**TICKET_DATA, "userEmail": end_user["email"]})
    notification = _notifications(mock_db, userEmail=end_user["email"])[0]

    res = client.put(f"/api/notifications/{notification['_id']}/read", headers=bearer(developer))

    assert res.status_code == 404


def test_read_all_and_clear(client, end_user, mock_db):
    for _ in range(3):
        client.post("/api/tickets", json={**TICKET_DATA, "userEmail": end_user["email"]})

    client.put("/api/notifications/read-all", headers=bearer(end_user))
    assert client.get("/api/notifications", headers=bearer(end_user)).json()["data"]["unreadCount"] == 0

    client.delete("/api/notifications", headers=bearer(end_user))
    assert _notifications(mock_db, userEmail=end_user["email"]) == []


def test_delete_single_notification(client, end_user, mock_db):
    client.post("/api/tickets", json={**TICKET_DATA, "userEmail": end_user["email"]})
    notification = _notifications(mock_db, userEmail=end_user["email"])[0]

    res = client.delete(f"/api/notifications/{notification['_id']}", headers=bearer(end_user))
    assert res.status_code == 200

    res = client.delete(f"/api/notifications/{notification['_id']}", headers=bearer(end_user))
    assert res.status_code == 404
