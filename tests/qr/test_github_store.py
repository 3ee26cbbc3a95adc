from __future__ import annotations

import base64
import json

import httpx
import pytest

from src.tutor_checkin.tutor_checkin.core.exceptions import ExternalServiceError
from src.tutor_checkin.tutor_checkin.qr.storage import GitHubContentsStore

CONTENTS_URL = "https://api.github.com/repos/kumon-nh/qr-codes/contents/qr/qr_1.png"


class FakeGitHub:
    """Contents API for a single repository, keyed by path."""

    def __init__(self):
        self.files: dict[str, tuple[str, bytes]] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.split("/contents/", 1)[1]
        if request.method == "GET":
            if path not in self.files:
                return httpx.Response(404, json={"message": "Not Found"})
            sha, data = self.files[path]
            encoded = base64.encodebytes(data).decode("ascii")
            return httpx.Response(200, json={"sha": sha, "content": encoded})
        body = json.loads(request.content)
        if request.method == "PUT":
            self.files[path] = (f"sha-{len(self.requests)}", base64.b64decode(body["content"]))
            return httpx.Response(201, json={"content": {"path": path}})
        if request.method == "DELETE":
            self.files.pop(path)
            return httpx.Response(200, json={})
        return httpx.Response(405)


def _store(handler, **overrides):
    kwargs = dict(token="ghp_test", owner="kumon-nh", repo="qr-codes", branch="main")
    kwargs.update(overrides)
    return GitHubContentsStore(client=httpx.Client(transport=httpx.MockTransport(handler)), **kwargs)


def test_put_creates_then_updates_with_sha():
    github = FakeGitHub()
    store = _store(github)

    store.put("qr/qr_1.png", b"first", message="Add QR for student 1")
    store.put("qr/qr_1.png", b"second", message="Add/Update QR for student 1")

    puts = [r for r in github.requests if r.method == "PUT"]
    first_body = json.loads(puts[0].content)
    second_body = json.loads(puts[1].content)
    assert str(puts[0].url) == CONTENTS_URL
    assert first_body == {
        "message": "Add QR for student 1",
        "branch": "main",
        "content": base64.b64encode(b"first").decode("ascii"),
    }
    assert second_body["sha"] == "sha-2"
    assert store.get("qr/qr_1.png") == b"second"


def test_requests_carry_auth_and_branch():
    github = FakeGitHub()

    _store(github).get("qr/qr_1.png")

    request = github.requests[0]
    assert request.headers["Authorization"] == "Bearer ghp_test"
    assert request.headers["Accept"] == "application/vnd.github+json"
    assert request.url.params["ref"] == "main"


def test_get_missing_file_is_none():
    assert _store(FakeGitHub()).get("qr/qr_404.png") is None


def test_delete_existing_and_missing():
    github = FakeGitHub()
    github.files["qr/qr_1.png"] = ("abc", b"png")
    store = _store(github)

    assert store.delete("qr/qr_1.png", message="Delete QR for student 1") is True
    delete = github.requests[-1]
    assert delete.method == "DELETE"
    assert json.loads(delete.content) == {"message": "Delete QR for student 1", "branch": "main", "sha": "abc"}
    assert store.delete("qr/qr_1.png", message="Delete QR for student 1") is False


def test_github_errors_raise():
    store = _store(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(ExternalServiceError, match="GitHub GET failed: 500") as exc:
        store.get("qr/qr_1.png")
    assert exc.value.details == "boom"


def test_missing_config_raises_before_any_request():
    github = FakeGitHub()

    with pytest.raises(ExternalServiceError, match="Missing GitHub config"):
        _store(github, token="").put("qr/qr_1.png", b"x", message="m")
    assert github.requests == []


def test_transport_failures_become_gateway_errors():
    def unreachable(request):
        raise httpx.ConnectError("connection refused", request=request)

    store = _store(unreachable)

    with pytest.raises(ExternalServiceError, match="GitHub GET failed: connection refused"):
        store.get("qr/qr_1.png")
    with pytest.raises(ExternalServiceError, match="GitHub GET failed"):
        store.put("qr/qr_1.png", b"png", message="Add QR for student 1")


def test_put_transport_failure_after_lookup():
    github = FakeGitHub()

    def flaky(request):
        if request.method == "PUT":
            raise httpx.ReadTimeout("timed out", request=request)
        return github(request)

    with pytest.raises(ExternalServiceError, match="GitHub PUT failed: timed out"):
        _store(flaky).put("qr/qr_1.png", b"png", message="Add QR for student 1")
