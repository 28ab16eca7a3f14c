"""Request Builder - Builds parameterized requests relative to a base address.

URL templates use positional placeholders ({0}, {1}, ...). Each argument is
stringified and percent-encoded before substitution; datetimes are rendered
as ISO-8601 first.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any
from urllib.parse import quote_plus

from recorder_proxy.json_codec import JsonSerializerStrategy, serialize


_PLACEHOLDER = re.compile(r"\{(\d+)\}")

JSON_CONTENT_TYPE = "application/json"


def normalize_base_url(base_url: str) -> str:
    """Ensure the base address ends with a path separator."""
    if not base_url.endswith("/"):
        base_url = base_url + "/"
    return base_url


def _stringify(value: Any) -> str:
    if isinstance(value, datetime):
        # Naive datetimes are taken to be local time
        if value.tzinfo is None:
            value = value.astimezone()
        return value.isoformat(timespec="microseconds")
    if isinstance(value, Enum):
        return value.name
    return str(value)


def format_url_argument(value: Any) -> str:
    """Render one URL argument: stringify, then percent-encode.

    Examples:
        format_url_argument("a b/c") -> "a+b%2Fc"
        format_url_argument(42) -> "42"
    """
    return quote_plus(_stringify(value))


def format_url(template: str, args: tuple[Any, ...] | list[Any]) -> str:
    """Substitute encoded arguments into a relative URL template.

    A single leading slash is stripped so the URL stays relative to the base
    address. Without arguments the template is used verbatim.

    Raises:
        IndexError: If a placeholder refers to a missing argument.
    """
    if template.startswith("/"):
        template = template[1:]
    if not args:
        return template

    encoded = [format_url_argument(arg) for arg in args]

    def replacer(match: re.Match) -> str:
        index = int(match.group(1))
        if index >= len(encoded):
            raise IndexError(
                f"URL template '{template}' refers to argument {{{index}}} "
                f"but only {len(encoded)} given"
            )
        return encoded[index]

    return _PLACEHOLDER.sub(replacer, template)


class ProxyRequest:
    """One request against a recorder service.

    A request is built per call and released by the pipeline once the call
    completes; a released request cannot be executed again.

    Usage:
        request = ProxyRequest("GET", "/Schedules/{0}", schedule_id)
        request.add_parameter("includeHistory", True)
    """

    def __init__(self, method: str, url: str, *args: Any) -> None:
        self.method = method.upper()
        self.url = format_url(url, args)
        self.content: bytes | None = None
        self.headers: dict[str, str] = {}
        self._released = False

    def __repr__(self) -> str:
        return f"ProxyRequest({self.method} {self.url})"

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Drop the body and mark the request as used."""
        self.content = None
        self._released = True

    def add_body(self, body: Any, strategy: JsonSerializerStrategy | None = None) -> None:
        """Attach ``body`` as a UTF-8 JSON document."""
        self.content = serialize(body, strategy)
        self.headers["Content-Type"] = JSON_CONTENT_TYPE

    def add_parameter(self, name: str, value: Any) -> None:
        """Append a query parameter, choosing '?' or '&' from the current URL."""
        separator = "&" if "?" in self.url else "?"
        self.url = f"{self.url}{separator}{name}={format_url_argument(value)}"


def add_body(
    request: ProxyRequest, body: Any, strategy: JsonSerializerStrategy | None = None
) -> None:
    """Attach a JSON body to ``request``."""
    request.add_body(body, strategy)


def add_parameter(request: ProxyRequest, name: str, value: Any) -> None:
    """Append a percent-encoded query parameter to ``request``."""
    request.add_parameter(name, value)
