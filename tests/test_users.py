from conftest import bearer, run
from supportdesk.services import tickets


def test_directory_hides_passwords(client, admin, developer, end_user):
    data = client.get("/api/users", headers=bearer(admin)).json()["data"]

    assert data["stats"] == {"total": 3, "admins": 1, "developers": 1, "users": 1}
    assert all("password" not in u for u in data["users"])


def test_directory_is_admin_only(client, developer):
    assert client.get("/api/users", headers=bearer(developer)).status_code == 403


def test_developers_sorted_by_name(client, admin, developer, other_developer):
    data = client.get("/api/users/developers", headers=bearer(admin)).json()["data"]
    assert [d["name"] for d in data["developers"]] == ["Ahmed", "Usman"]


def test_workload(client, admin, developer, make_ticket, mock_db):
    for status in ("TO DO", "TO DO", "In Progress QA"):
        ticket = make_ticket(status=status)
        run(tickets.assign(mock_db, ticket, str(developer["_id"]), admin))
    done = make_ticket()
    run(tickets.assign(mock_db, done, str(developer["_id"]), admin))
    run(tickets.change_status(mock_db, done, "Done", admin))

    workload = client.get("/api/users/workload", headers=bearer(admin)).json()["data"]["workload"]

    assert workload == [{
        "developer": {"id": str(developer["_id"]), "name": "Usman", "email": "usman@example.com"},
        "tickets": {"total": 4, "inProgress": 3, "completed": 1},
    }]


def test_health_and_unknown_route(client):
    assert client.get("/api/health").json()["success"] is True
    res = client.get("/api/nope")
    assert res.status_code == 404
    assert res.json() == {"success": False, "message": "Route not found"}
