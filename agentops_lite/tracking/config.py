"""Tracker configuration: defaults, dict loading and environment lookup."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from agentops_lite.tracking.constants import (
    DEFAULT_ENDPOINT,
    ENV_API_KEY,
    ENV_AUTO_START_SESSION,
    ENV_ENDPOINT,
    ENV_TAGS,
    ENV_TRACE_NAME,
    FALSE_VALUES,
)

# camelCase keys accepted for compatibility with the JS client options
_KEY_ALIASES = {
    "apiKey": "api_key",
    "traceName": "trace_name",
    "autoStartSession": "auto_start_session",
}


@dataclass
class TrackerConfig:
    """Options recognized by :meth:`Tracker.init`."""

    api_key: str = ""
    tags: list[str] = field(default_factory=list)
    trace_name: str | None = None
    auto_start_session: bool = True
    endpoint: str = DEFAULT_ENDPOINT

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TrackerConfig:
        valid_keys = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            key = _KEY_ALIASES.get(key, key)
            if key in valid_keys and value is not None:
                kwargs[key] = value
        if "tags" in kwargs:
            kwargs["tags"] = list(kwargs["tags"])
        return cls(**kwargs)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> TrackerConfig:
        """Build a config from ``AGENTOPS_*`` environment variables.

        Looks for:
            - AGENTOPS_API_KEY: collector API key
            - AGENTOPS_TAGS: comma separated default session tags
            - AGENTOPS_TRACE_NAME: default trace label
            - AGENTOPS_AUTO_START_SESSION: "0"/"false"/"no"/"off" disables
            - AGENTOPS_ENDPOINT: collector URL override
        """
        env = os.environ if environ is None else environ
        raw_tags = env.get(ENV_TAGS, "")
        auto_start = env.get(ENV_AUTO_START_SESSION, "").strip().lower()
        return cls(
            api_key=env.get(ENV_API_KEY, ""),
            tags=[t.strip() for t in raw_tags.split(",") if t.strip()],
            trace_name=env.get(ENV_TRACE_NAME) or None,
            auto_start_session=auto_start not in FALSE_VALUES,
            endpoint=env.get(ENV_ENDPOINT) or DEFAULT_ENDPOINT,
        )

    @property
    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 8:
            return "*" * len(self.api_key)
        return f"{self.api_key[:4]}...{self.api_key[-4:]}"
