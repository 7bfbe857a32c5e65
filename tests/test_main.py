from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from clinic import __version__

class TestApplication:

    def test_health_check(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        body = response.json()
        assert body["success"] is True
        assert body["data"]["version"] == __version__

    def test_unknown_route_uses_envelope(self, client):
        response = client.get("/api/v1/nowhere")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "message": "The requested resource was not found"
        }

    def test_process_time_header(self, client):
        response = client.get("/health")
        assert "X-Process-Time" in response.headers

    def test_database_failure_is_hidden(self, client, secretary, appointment_payload, monkeypatch):
        def failing_commit(self):
            raise OperationalError("INSERT INTO appointments", {}, Exception("disk I/O error"))

        monkeypatch.setattr(Session, "commit", failing_commit)

        response = client.post("/api/v1/appointments", json=appointment_payload, headers=secretary.headers)
        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "message": "An unexpected error occurred"
        }
