import logging
import os
import tomllib

from multidict import CIMultiDict

from .errors import CatalogError
from .models import FileBody, LiteralBody, MockEntry, ResponseSpec, classify_body

logger = logging.getLogger("MockEngine")


class MockEngine:
    """Match requests against a mock catalog and build the mocked responses"""

    def __init__(self, rules_file=None):
        self.rules_file = rules_file
        self.base_dir = os.path.dirname(os.path.abspath(rules_file)) if rules_file else os.getcwd()
        self.rules = []
        if rules_file:
            self.load_rules()

    def load_rules(self):
        """Load mock rules from the TOML catalog. Raises CatalogError."""
        try:
            with open(self.rules_file, "rb") as f:
                data = tomllib.load(f)
        except OSError as e:
            raise CatalogError(f"Failed to read mock config file {self.rules_file}: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise CatalogError(f"Failed to parse mock config ({self.rules_file}): {e}") from e

        mocks = data.get("mocks", [])
        if not isinstance(mocks, list):
            raise CatalogError(f"{self.rules_file}: 'mocks' must be an array of tables")
        self.rules = [self._parse_rule(i, raw) for i, raw in enumerate(mocks)]
        logger.info(f"Loaded {len(self.rules)} mock(s) from {self.rules_file}")

    def _parse_rule(self, index, raw) -> MockEntry:
        where = f"{self.rules_file}: mocks[{index}]"
        if not isinstance(raw, dict):
            raise CatalogError(f"{where} is not a table")
        for key in ("method", "path"):
            if not isinstance(raw.get(key), str):
                raise CatalogError(f"{where} is missing string field '{key}'")

        status = raw.get("status", 200)
        if isinstance(status, bool) or not isinstance(status, int):
            raise CatalogError(f"{where}: status must be an integer, got {status!r}")
        if not 100 <= status <= 599:
            raise CatalogError(f"{where}: status must be between 100 and 599, got {status!r}")

        headers = raw.get("headers", {})
        if not isinstance(headers, dict):
            raise CatalogError(f"{where}: headers must be a table")

        body = raw.get("body", "")
        if not isinstance(body, str):
            raise CatalogError(f"{where}: body must be a string")

        return MockEntry(
            method=raw["method"],
            path=raw["path"],
            body=classify_body(body),
            status=status,
            headers={str(k): str(v) for k, v in headers.items()},
        )

    def match(self, method, path):
        """Return the first rule declared for method and path+query, or None"""
        for rule in self.rules:
            if rule.matches(method, path):
                return rule
        return None

    def resolve_body(self, body) -> bytes:
        if isinstance(body, LiteralBody):
            return body.text.encode("utf-8")

        assert isinstance(body, FileBody)
        file_path = os.path.join(self.base_dir, body.path)
        try:
            with open(file_path, "rb") as f:
                return f.read()
        except OSError as e:
            # Serve the declared name as text rather than failing the request
            logger.warning(f"Error reading {file_path}: {e}; serving {body.path!r} as literal body")
            return body.path.encode("utf-8")

    def create_response(self, rule: MockEntry) -> ResponseSpec:
        return ResponseSpec(
            status=rule.status,
            headers=CIMultiDict(rule.headers),
            body=self.resolve_body(rule.body),
        )
