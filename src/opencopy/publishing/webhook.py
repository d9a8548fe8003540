"""Webhook publisher: POST articles as JSON to a user-supplied endpoint."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable

import httpx
from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from opencopy.content.types import IntegrationType
from opencopy.publishing.base import BasePublisher, PublishableContent, PublishResult
from opencopy.storage.models import Integration

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_TIMES = 3
DEFAULT_RETRY_DELAY_MS = 100


class _ServerError(Exception):
    """A 5xx response, raised so the retry policy sees it."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def _is_retryable(exc: BaseException) -> bool:
    """Retry connection problems and server errors, never 4xx responses."""
    return isinstance(exc, (httpx.TransportError, _ServerError))


def webhook_payload(event_type: str, articles: list[dict], timestamp: datetime) -> dict:
    return {
        "event_type": event_type,
        "timestamp": timestamp.isoformat(),
        "data": {"articles": articles},
    }


def _test_article(now: datetime) -> dict:
    return {
        "id": 0,
        "title": "Test Connection",
        "slug": "test-connection",
        "content_html": "<p>This is a test payload to verify your webhook endpoint.</p>",
        "content_markdown": "This is a test payload to verify your webhook endpoint.",
        "meta_description": "Test payload",
        "created_at": now.isoformat(),
    }


class WebhookPublisher(BasePublisher):
    """Sends content with Bearer token authentication."""

    type = IntegrationType.WEBHOOK

    def __init__(
        self,
        *,
        user_agent: str = "OpenCopy/1.0",
        timeout: float = DEFAULT_TIMEOUT,
        retry_times: int = DEFAULT_RETRY_TIMES,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._user_agent = user_agent
        self._timeout = timeout
        self._retry_times = retry_times
        self._transport = transport
        self._clock = clock

    def validate_credentials(self, integration: Integration) -> list[str]:
        errors: list[str] = []
        credentials = integration.credentials
        endpoint_url = credentials.get("endpoint_url")
        access_token = credentials.get("access_token")

        if not endpoint_url:
            errors.append("Webhook URL is required")
        else:
            try:
                url = httpx.URL(endpoint_url)
            except httpx.InvalidURL:
                url = None
            if url is None or not url.scheme or not url.host:
                errors.append("Webhook URL must be a valid URL")
            elif url.scheme != "https":
                errors.append("Webhook URL must use HTTPS")

        if not access_token:
            errors.append("Access token is required")

        return errors

    def _do_publish(self, content: PublishableContent, integration: Integration) -> PublishResult:
        payload = webhook_payload("publish_articles", [content.to_payload()], self._clock())
        return self._send(integration, payload)

    def _do_test(self, integration: Integration) -> PublishResult:
        now = self._clock()
        payload = webhook_payload("test", [_test_article(now)], now)
        return self._send(integration, payload)

    def _send(self, integration: Integration, payload: dict) -> PublishResult:
        settings = integration.settings
        endpoint_url = integration.credentials["endpoint_url"]
        headers = self._build_headers(integration)
        timeout = settings.get("timeout", self._timeout)
        retry_times = settings.get("retry_times", self._retry_times)
        retry_delay_ms = settings.get("retry_delay", DEFAULT_RETRY_DELAY_MS)

        request = {
            "payload": payload,
            "request_url": endpoint_url,
            "request_method": "POST",
            "request_headers": headers,
        }

        with httpx.Client(timeout=timeout, transport=self._transport) as client:
            try:
                for attempt in Retrying(
                    retry=retry_if_exception(_is_retryable),
                    stop=stop_after_attempt(max(1, retry_times)),
                    wait=wait_fixed(retry_delay_ms / 1000),
                    reraise=True,
                ):
                    with attempt:
                        response = client.post(endpoint_url, json=payload, headers=headers)
                        if response.is_server_error:
                            raise _ServerError(response)
            except _ServerError as e:
                response = e.response
            except httpx.TransportError as e:
                return PublishResult.failure(f"Connection failed: {e}", **request)

        body = _json_body(response)
        details = {
            **request,
            "response": body if body is not None else {"body": response.text},
            "http_status_code": response.status_code,
            "response_headers": dict(response.headers),
        }

        if response.is_success:
            data = body if isinstance(body, dict) else {}
            nested = data.get("data") if isinstance(data.get("data"), dict) else {}
            external_id = data.get("id") or nested.get("id")
            external_url = data.get("url") or nested.get("url")
            return PublishResult.success(
                external_id=str(external_id) if external_id is not None else None,
                external_url=external_url,
                **details,
            )

        return PublishResult.failure(_error_message(response, body), **details)

    def _build_headers(self, integration: Integration) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {integration.credentials['access_token']}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": self._user_agent,
        }
        custom = integration.settings.get("headers")
        if isinstance(custom, dict):
            headers.update({str(k): str(v) for k, v in custom.items()})
        return headers


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_message(response: httpx.Response, body: Any) -> str:
    if isinstance(body, dict):
        if "message" in body:
            return str(body["message"])
        if "error" in body:
            error = body["error"]
            return error if isinstance(error, str) else json.dumps(error)
        if "errors" in body:
            errors = body["errors"]
            if isinstance(errors, list):
                return ", ".join(e if isinstance(e, str) else json.dumps(e) for e in errors)
            return str(errors)
    return f"HTTP {response.status_code}: {response.reason_phrase}"
