# notifier.py
import logging
from typing import Any, Dict, List, Optional

import requests
from slack_sdk.errors import SlackClientError
from slack_sdk.webhook import WebhookClient

from reminders import Provider

logger = logging.getLogger(__name__)

BOT_USERNAME = "Pull Request reviews reminder"
REQUEST_TIMEOUT = 30  # seconds


def build_slack_payload(message: str, channel: Optional[str] = None) -> Dict[str, Any]:
    payload = {
        "username": BOT_USERNAME,
        "text": message,
    }
    if channel:
        payload["channel"] = channel
    return payload


def build_teams_payload(message: str, mentions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Wraps the message in an Adaptive Card; mentions only ping with matching entities."""
    return {
        "type": "message",
        "attachments": [
            {
                "contentType": "application/vnd.microsoft.card.adaptive",
                "content": {
                    "type": "AdaptiveCard",
                    "$schema": "http://adaptivecards.io/schemas/adaptive-card.json",
                    "version": "1.0",
                    "body": [
                        {
                            "type": "TextBlock",
                            "text": message,
                            "wrap": True
                        }
                    ],
                    "msteams": {
                        "width": "Full",
                        "entities": mentions or []
                    }
                }
            }
        ]
    }


def build_payload(provider, message: str, channel: Optional[str] = None,
                  mentions: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    if Provider.parse(provider) is Provider.MSTEAMS:
        return build_teams_payload(message, mentions)
    return build_slack_payload(message, channel)


def send_notification(webhook_url: str, provider, payload: Dict[str, Any]) -> bool:
    """Posts the payload to the provider's incoming webhook."""
    if Provider.parse(provider) is Provider.MSTEAMS:
        return _send_teams(webhook_url, payload)
    return _send_slack(webhook_url, payload)


def _send_slack(webhook_url: str, payload: Dict[str, Any]) -> bool:
    try:
        response = WebhookClient(webhook_url, timeout=REQUEST_TIMEOUT).send_dict(payload)
    except (SlackClientError, OSError) as e:
        logger.error(f"Error sending Slack webhook message: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Slack webhook rejected message: {response.status_code} {response.body}")
        return False
    logger.info("Sent reminder to Slack")
    return True


def _send_teams(webhook_url: str, payload: Dict[str, Any]) -> bool:
    try:
        response = requests.post(webhook_url, json=payload, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Error sending MS Teams webhook message: {e}")
        return False
    logger.info("Sent reminder to MS Teams")
    return True
