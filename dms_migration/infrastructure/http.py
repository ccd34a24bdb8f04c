"""Shared helpers for the httpx based adapters."""
from __future__ import annotations

from typing import Any

import httpx

from dms_migration.core.errors import ConflictError, NotFoundError, RepositoryError


def error_message(response: httpx.Response) -> str:
    """Extract the service's own error text from an error response."""

    try:
        body: Any = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"

    if isinstance(body, dict):
        for container in (body.get("odata.error"), body.get("error")):
            if isinstance(container, dict):
                message = container.get("message")
                if isinstance(message, dict):
                    message = message.get("value")
                if message:
                    return str(message)
        detail = body.get("detail")
        if detail:
            return detail if isinstance(detail, str) else str(detail)
    return response.text.strip() or f"HTTP {response.status_code}"


def raise_for_response(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = error_message(response)
    if response.status_code == 404:
        raise NotFoundError(message)
    if response.status_code == 409:
        raise ConflictError(message)
    raise RepositoryError(message, status_code=response.status_code)


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        raise RepositoryError(f"{method} {url} failed: {exc}") from exc
    raise_for_response(response)
    return response
