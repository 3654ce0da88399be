import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from .errors import ConfigError

logger = logging.getLogger("ProxyCore")

DEFAULT_PORT = 6969


@dataclass(frozen=True)
class RelayConfig:
    target_url: str
    api_url: str = f"http://localhost:{DEFAULT_PORT}"
    add_cors_headers: bool = False
    extra_headers: Tuple[str, ...] = field(default_factory=tuple)
    mock_config: Optional[str] = None
    save_request_directory: Optional[str] = None
    hide_headers: bool = False
    hide_body: bool = False
    upstream_timeout: float = 30.0

    def validate(self) -> None:
        """Raise ConfigError if either URL is unusable"""
        _check_url(self.target_url, "target-url")
        _check_url(self.api_url, "api-url")
        if self.upstream_timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.upstream_timeout}")

    def listen_address(self) -> Tuple[str, int]:
        parsed = _check_url(self.api_url, "api-url")
        host = parsed.hostname
        if host == "localhost":
            host = "127.0.0.1"
        elif not host:
            host = "0.0.0.0"
        try:
            port = parsed.port
        except ValueError as e:
            raise ConfigError(f"Invalid api-url {self.api_url!r}: {e}") from e
        if port is None:
            port = {"http": 80, "https": 443}.get(parsed.scheme, DEFAULT_PORT)
        return host, port

    def parsed_extra_headers(self) -> List[Tuple[str, str]]:
        return parse_extra_headers(self.extra_headers)


def _check_url(url: str, option: str):
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(
            f"Invalid {option} {url!r}. Must be a valid URL like http://localhost:{DEFAULT_PORT}"
        )
    return parsed


def parse_extra_headers(raw_headers) -> List[Tuple[str, str]]:
    """Split "Name: value" strings, skipping the ones that don't parse."""
    headers = []
    for raw in raw_headers:
        name, sep, value = raw.partition(":")
        name, value = name.strip(), value.strip()
        if not sep:
            logger.warning(f"Extra header not in 'Key: Value' format: {raw}")
            continue
        if not name or any(c.isspace() for c in name):
            logger.warning(f"Invalid extra header format: {raw}")
            continue
        headers.append((name, value))
    return headers
