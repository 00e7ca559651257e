import pytest

pytest.importorskip("fastapi")
pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from yggsession.backend.api import create_app
from yggsession.backend.audit import InMemoryAuditSink
from yggsession.backend.config import BackendSettings
from yggsession.backend.models import Permission, Player, Token, User
from yggsession.backend.security import verify_signature
from yggsession.backend.store import InMemoryAccountDirectory

PROFILE = "11111111-1111-1111-1111-111111111111"
JOIN_URL = "/sessionserver/session/minecraft/join"
HAS_JOINED_URL = "/sessionserver/session/minecraft/hasJoined"

SETTINGS = BackendSettings(
    cache_driver="array",
    redis_url="redis://127.0.0.1:6379/0",
    database_url=None,
    cache_path="storage/cache",
    validate_url="https://auth.test/validate",
    validate_timeout=1.0,
    has_joined_timeout=4,
    signing_key="api-key",
    log_level="INFO",
    host="127.0.0.1",
    port=8000,
)


class _RejectingOracle:
    def validate(self, access_token: str) -> bool:
        return False


def _directory() -> InMemoryAccountDirectory:
    directory = InMemoryAccountDirectory()
    directory.add_user(User(uid=1, email="steve@example.com"))
    directory.add_player(Player(pid=10, name="Steve", uid=1), uuid=PROFILE)
    directory.add_token(Token(access_token="abc", profile_id=PROFILE, owner_uid=1))
    return directory


def _client(directory: InMemoryAccountDirectory | None = None, audit: InMemoryAuditSink | None = None) -> TestClient:
    app = create_app(
        settings=SETTINGS,
        directory=directory if directory is not None else _directory(),
        audit=audit if audit is not None else InMemoryAuditSink(),
        validator=_RejectingOracle(),
    )
    return TestClient(app)


def test_join_then_has_joined_returns_profile() -> None:
    client = _client()

    joined = client.post(JOIN_URL, json={"accessToken": "abc", "selectedProfile": PROFILE, "serverId": "srv1"})
    found = client.get(HAS_JOINED_URL, params={"username": "Steve", "serverId": "srv1"})
    again = client.get(HAS_JOINED_URL, params={"username": "Steve", "serverId": "srv1"})

    assert joined.status_code == 204
    assert found.status_code == 200
    data = found.json()
    assert data["name"] == "Steve"
    prop = data["properties"][0]
    assert verify_signature(prop["value"], prop["signature"], "api-key") is True
    assert again.status_code == 204


def test_join_with_unknown_profile_returns_forbidden_operation() -> None:
    client = _client()

    response = client.post(
        JOIN_URL,
        json={"accessToken": "abc", "selectedProfile": "33333333-3333-3333-3333-333333333333", "serverId": "srv1"},
    )

    assert response.status_code == 403
    assert response.json()["error"] == "ForbiddenOperationException"
    assert response.json()["errorMessage"].startswith("Invalid profile.")


def test_join_by_banned_user_returns_forbidden_operation() -> None:
    directory = _directory()
    directory.set_permission(1, Permission.BANNED)
    client = _client(directory=directory)

    response = client.post(JOIN_URL, json={"accessToken": "abc", "selectedProfile": PROFILE, "serverId": "srv1"})

    assert response.status_code == 403
    assert response.json()["errorMessage"] == "You have been banned."


def test_join_without_local_token_returns_forbidden_operation() -> None:
    client = _client()

    response = client.post(JOIN_URL, json={"accessToken": "nope", "selectedProfile": PROFILE, "serverId": "srv1"})

    assert response.status_code == 403
    assert response.json()["errorMessage"] == "No valid token was issued for this profile."


def test_join_rejects_malformed_body() -> None:
    client = _client()

    response = client.post(JOIN_URL, json={"accessToken": "abc"})

    assert response.status_code == 422


def test_has_joined_records_ip_for_audit_only() -> None:
    audit = InMemoryAuditSink()
    client = _client(audit=audit)
    client.post(JOIN_URL, json={"accessToken": "abc", "selectedProfile": PROFILE, "serverId": "srv1"})

    response = client.get(HAS_JOINED_URL, params={"username": "Steve", "serverId": "srv1", "ip": "203.0.113.9"})

    assert response.status_code == 200
    assert audit.records[0].parameters == {"selectedProfile": PROFILE, "serverId": "srv1"}
    assert audit.records[-1].ip == "203.0.113.9"


def test_has_joined_without_join_returns_no_content() -> None:
    client = _client()

    response = client.get(HAS_JOINED_URL, params={"username": "Steve", "serverId": "srv1"})

    assert response.status_code == 204
    assert response.content == b""


def test_has_joined_with_missing_parameters_returns_no_content() -> None:
    client = _client()
    client.post(JOIN_URL, json={"accessToken": "abc", "selectedProfile": PROFILE, "serverId": "srv1"})

    without_username = client.get(HAS_JOINED_URL, params={"serverId": "srv1"})
    without_server = client.get(HAS_JOINED_URL, params={"username": "Steve"})
    found = client.get(HAS_JOINED_URL, params={"username": "Steve", "serverId": "srv1"})

    assert without_username.status_code == 204
    assert without_server.status_code == 204
    assert found.status_code == 200
