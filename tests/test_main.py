from pathlib import Path

from nolsaf_backend.config import Settings

CONFIG_DIR = Path(__file__).resolve().parent.parent / "resources/config"


def test_shipped_config_files_load():
    test_settings = Settings.from_yaml(str(CONFIG_DIR / "test.yaml"))
    assert test_settings.database_url == "sqlite+aiosqlite:///:memory:"
    assert test_settings.mpesa_webhook_secret == "mpesa-test-secret"

    local_settings = Settings.from_yaml(str(CONFIG_DIR / "local.yaml"))
    assert local_settings.database_url.startswith("mysql+asyncmy://")


async def test_health(client):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/nowhere")
    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["message"]


async def test_validation_errors_are_400(client):
    response = await client.post("/api/auth/login", json={"email": "not-an-email"})
    assert response.status_code == 400
    assert response.json()["success"] is False
