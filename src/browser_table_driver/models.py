"""Shared models used across the browser table driver."""

from __future__ import annotations

import enum
import re
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class SameSite(str, enum.Enum):
    """Cookie same-site policy as understood by Playwright."""

    STRICT = "Strict"
    LAX = "Lax"
    NONE = "None"


class CookieEntry(BaseModel):
    """A single cookie of a browser context.

    Accepts both the snake_case field names and the camelCase keys Playwright
    (and table authors) use, so a row like ``{"name": "a", "httpOnly": true}``
    validates directly.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str
    value: str
    domain: Optional[str] = None
    path: Optional[str] = None
    url: Optional[str] = None
    expires: Optional[float] = None
    secure: bool = False
    http_only: bool = Field(default=False, alias="httpOnly")
    same_site: Optional[SameSite] = Field(default=None, alias="sameSite")

    def to_playwright(self) -> dict[str, Any]:
        """Return the cookie in the shape ``BrowserContext.add_cookies`` expects."""

        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        # Playwright rejects cookies that carry both url and domain/path.
        if "url" in data:
            data.pop("domain", None)
            data.pop("path", None)
        elif "domain" in data:
            data.setdefault("path", "/")
        # -1 marks a session cookie in Playwright's own output.
        if data.get("expires") == -1:
            data.pop("expires")
        return data

    @classmethod
    def from_playwright(cls, cookie: dict[str, Any]) -> "CookieEntry":
        return cls.model_validate(cookie)


class WaitKind(str, enum.Enum):
    """Events an act-and-wait call can block on."""

    RESPONSE = "response"
    REQUEST_FINISHED = "request_finished"
    NEW_PAGE = "new_page"
    NAVIGATION = "navigation"
    ELAPSED = "elapsed"


_GLOB_ESCAPED = set("$^+.*()|\\?{}[]")


def glob_to_regex(glob: str) -> str:
    """Translate a URL glob into an anchored regular expression.

    Follows Playwright's glob rules: ``*`` matches within one path segment,
    ``**`` matches across segments, ``{a,b}`` is an alternation, ``\\``
    escapes the next character and everything else (``?`` and ``[`` included)
    is literal.
    """

    tokens = ["^"]
    in_group = False
    i = 0
    while i < len(glob):
        char = glob[i]
        if char == "\\" and i + 1 < len(glob):
            i += 1
            escaped = glob[i]
            tokens.append("\\" + escaped if escaped in _GLOB_ESCAPED else escaped)
        elif char == "*":
            stars = 1
            while i + 1 < len(glob) and glob[i + 1] == "*":
                stars += 1
                i += 1
            tokens.append("(.*)" if stars > 1 else "([^/]*)")
        elif char == "{":
            in_group = True
            tokens.append("(")
        elif char == "}":
            in_group = False
            tokens.append(")")
        elif char == "," and in_group:
            tokens.append("|")
        else:
            tokens.append("\\" + char if char in _GLOB_ESCAPED else char)
        i += 1
    tokens.append("$")
    return "".join(tokens)


class WaitCondition(BaseModel):
    """Condition armed before an action is dispatched."""

    kind: WaitKind
    url_pattern: Optional[str] = Field(
        default=None,
        description="Glob (or regular expression when regex is set) matched against the URL.",
    )
    regex: bool = False
    timeout: Optional[float] = Field(
        default=None,
        description="Timeout in milliseconds; falls back to the context default.",
    )

    def matcher(self) -> Optional[Union[str, re.Pattern[str]]]:
        """Return the URL matcher in the form Playwright accepts."""

        if self.url_pattern is None:
            return None
        if self.regex:
            return re.compile(self.url_pattern)
        return self.url_pattern

    def url_regex(self) -> Optional[re.Pattern[str]]:
        """Return the URL matcher as a compiled pattern, globs translated like Playwright."""

        if self.url_pattern is None:
            return None
        if self.regex:
            return re.compile(self.url_pattern)
        return re.compile(glob_to_regex(self.url_pattern))

    def describe(self) -> str:
        label = self.kind.value.replace("_", " ")
        if self.url_pattern is not None:
            flavour = "regex" if self.regex else "url"
            label = f"{label} matching {flavour} '{self.url_pattern}'"
        if self.timeout is not None:
            label = f"{label} within {self.timeout:g} ms"
        return label


class FailureKind(str, enum.Enum):
    """Broad category of a failure, used downstream to decide how to count it."""

    USAGE = "usage"
    TIMEOUT = "timeout"
    ENGINE = "engine"
    INFRA = "infra"


class Diagnostic(BaseModel):
    """Failure payload attached by the diagnostic boundary."""

    kind: FailureKind
    operation: str
    message: str
    escaped_message: str
    screenshot_path: Optional[Path] = None
    html: str
