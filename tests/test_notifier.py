"""Tests for webhook payloads and delivery. No network requests are made."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

import notifier


class FakeWebhookClient:
    calls: list = []
    status_code = 200

    def __init__(self, url, timeout=30):
        self.url = url

    def send_dict(self, body):
        FakeWebhookClient.calls.append((self.url, body))
        return SimpleNamespace(status_code=FakeWebhookClient.status_code, body="ok")


@pytest.fixture(autouse=True)
def fake_slack(monkeypatch: pytest.MonkeyPatch):
    FakeWebhookClient.calls = []
    FakeWebhookClient.status_code = 200
    monkeypatch.setattr(notifier, "WebhookClient", FakeWebhookClient)
    return FakeWebhookClient


def test_slack_payload_with_channel() -> None:
    payload = notifier.build_payload("slack", "hello", channel="#reviews")
    assert payload == {
        "username": "Pull Request reviews reminder",
        "text": "hello",
        "channel": "#reviews",
    }


def test_default_provider_uses_slack_payload() -> None:
    assert notifier.build_payload("other", "hello") == {
        "username": "Pull Request reviews reminder",
        "text": "hello",
    }


def test_teams_payload_carries_mentions() -> None:
    mentions = [{"type": "mention", "text": "<at>ID1</at>", "mentioned": {"id": "ID1", "name": "User1"}}]
    payload = notifier.build_payload("msteams", "hello", channel="#ignored", mentions=mentions)
    content = payload["attachments"][0]["content"]
    assert payload["type"] == "message"
    assert payload["attachments"][0]["contentType"] == "application/vnd.microsoft.card.adaptive"
    assert content["body"] == [{"type": "TextBlock", "text": "hello", "wrap": True}]
    assert content["msteams"]["entities"] == mentions


def test_teams_payload_without_mentions() -> None:
    payload = notifier.build_teams_payload("hello")
    assert payload["attachments"][0]["content"]["msteams"]["entities"] == []


def test_send_slack(fake_slack) -> None:
    assert notifier.send_notification("https://hooks.slack.test/x", "slack", {"text": "hi"})
    assert fake_slack.calls == [("https://hooks.slack.test/x", {"text": "hi"})]


def test_send_slack_rejected(fake_slack) -> None:
    fake_slack.status_code = 404
    assert not notifier.send_notification("https://hooks.slack.test/x", "slack", {"text": "hi"})


def test_send_teams(monkeypatch: pytest.MonkeyPatch, fake_slack) -> None:
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        response = requests.Response()
        response.status_code = 200
        return response

    monkeypatch.setattr(notifier.requests, "post", fake_post)
    assert notifier.send_notification("https://teams.test/hook", "msteams", {"type": "message"})
    assert calls == [("https://teams.test/hook", {"type": "message"})]
    assert fake_slack.calls == []


def test_send_teams_network_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_post(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(notifier.requests, "post", failing_post)
    assert not notifier.send_notification("https://teams.test/hook", "msteams", {})
