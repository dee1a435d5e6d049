"""Pydantic v2 models for bot options, plus log scrubbing."""

from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ci_chat_bot.config import (
    DEFAULT_BUILD_CLUSTER_KUBECONFIGS_LOCATION,
    DEFAULT_CONFIG_RESOLVER,
    DEFAULT_GITHUB_ENDPOINT,
    DEFAULT_PROWJOB_NAMESPACE,
)

_RESOLVER_SCHEMES = {"http", "https", "file"}
_FACTORY_RE = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")
# RFC 1123 label
_NAMESPACE_RE = re.compile(r"^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?$")


class BotOptions(BaseModel):
    """Validated startup options for the chat bot process."""

    model_config = ConfigDict(frozen=True)

    config_resolver: str = DEFAULT_CONFIG_RESOLVER
    github_endpoint: str = DEFAULT_GITHUB_ENDPOINT
    force_pr_owner: str = ""
    build_cluster_kubeconfigs_location: Path = Path(DEFAULT_BUILD_CLUSTER_KUBECONFIGS_LOCATION)
    release_cluster_kubeconfig: Path | None = None
    prow_config: Path | None = None
    job_config: Path | None = None
    prowjob_namespace: str = Field(default=DEFAULT_PROWJOB_NAMESPACE, min_length=1, max_length=63)
    job_manager_factory: str | None = None
    bot_factory: str | None = None

    @field_validator("config_resolver")
    @classmethod
    def _check_resolver_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in _RESOLVER_SCHEMES:
            valid = ", ".join(sorted(_RESOLVER_SCHEMES))
            msg = f"--config-resolver is not a valid URL: {value!r}. Scheme must be one of: {valid}"
            raise ValueError(msg)
        if parsed.scheme == "file" and not parsed.path:
            msg = f"--config-resolver file URL has no path: {value!r}"
            raise ValueError(msg)
        if parsed.scheme != "file" and not parsed.netloc:
            msg = f"--config-resolver URL has no host: {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("github_endpoint")
    @classmethod
    def _check_github_endpoint(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            msg = f"--github-endpoint is not a valid URL: {value!r}"
            raise ValueError(msg)
        return value.rstrip("/")

    @field_validator("prowjob_namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        if not _NAMESPACE_RE.match(value):
            msg = f"Invalid namespace: {value!r}. Must be a valid RFC 1123 label."
            raise ValueError(msg)
        return value

    @field_validator("job_manager_factory", "bot_factory")
    @classmethod
    def _check_factory_path(cls, value: str | None) -> str | None:
        if value is not None and not _FACTORY_RE.match(value):
            msg = f"Factory must be a 'module:callable' path, got {value!r}"
            raise ValueError(msg)
        return value


# --- Output scrubbing ---

_BEARER_PATTERN = re.compile(r"\b(Bearer|Basic)\s+[\w.~+/=-]+", re.IGNORECASE)
_TOKEN_FIELD_PATTERN = re.compile(r"(\btoken[\"']?\s*[:=]\s*[\"']?)[^\s\"',}]+", re.IGNORECASE)
_INLINE_DATA_PATTERN = re.compile(
    r"((?:certificate-authority|client-certificate|client-key)-data[\"']?\s*:\s*[\"']?)[A-Za-z0-9+/=]+"
)
_SLACK_TOKEN_PATTERN = re.compile(r"\bxox[abprs]-[\w-]+")


def scrub_sensitive_values(text: str) -> str:
    """Remove bearer tokens, bot tokens, and inline certificate or key data from text."""
    if not text:
        return text
    result = _BEARER_PATTERN.sub(r"\1 [REDACTED]", text)
    result = _TOKEN_FIELD_PATTERN.sub(r"\1[REDACTED]", result)
    result = _INLINE_DATA_PATTERN.sub(r"\1[REDACTED]", result)
    result = _SLACK_TOKEN_PATTERN.sub("[REDACTED_TOKEN]", result)
    return result
