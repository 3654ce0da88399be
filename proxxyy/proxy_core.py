import asyncio
import json
import logging

import aiohttp
from aiohttp import web
from multidict import CIMultiDict
from yarl import URL

from .errors import UpstreamError, describe_error
from .headers import REQUEST_SKIP_HEADERS, RESPONSE_SKIP_HEADERS, compose_headers, strip_hop_by_hop
from .mock_engine import MockEngine
from .models import ResponseSpec
from .request_store import RequestStore

# Setup Logging
logger = logging.getLogger("ProxyCore")

MAX_BODY_SIZE = 64 * 1024 * 1024


def format_body_for_logging(body: bytes, hide_body: bool, prefix: str) -> str:
    if hide_body:
        return f"{prefix}: [hidden] ({len(body)} bytes)"
    if not body:
        return f"{prefix}: [empty] (0 bytes)"
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return f"{prefix}: [binary data] ({len(body)} bytes)"
    if not text.strip():
        return f"{prefix}: [empty string]"
    try:
        text = json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        pass
    return f"{prefix} ({len(body)} bytes):\n{text}"


def format_headers_for_logging(headers, hide_headers: bool) -> str:
    if hide_headers:
        return "Request headers: [hidden]"
    pretty = json.dumps(dict(sorted((k.lower(), v) for k, v in headers.items())), indent=2)
    return f"Request headers:\n{pretty}"


class ProxyServer:
    def __init__(self, config, mock_engine=None, request_store=None):
        self.config = config
        self.host, self.port = config.listen_address()
        if mock_engine is None and config.mock_config:
            mock_engine = MockEngine(config.mock_config)
        self.mock_engine = mock_engine
        if request_store is None and config.save_request_directory:
            request_store = RequestStore(config.save_request_directory)
        self.request_store = request_store
        self.extra_headers = config.parsed_extra_headers()
        self.timeout = aiohttp.ClientTimeout(total=config.upstream_timeout)
        self.session = None
        self.runner = None
        self.running = False
        self._stop_event = asyncio.Event()
        self.log_queue = None # Can be set by TUI

    def log(self, message, level=logging.INFO):
        logger.log(level, message)
        if self.log_queue:
            self.log_queue.put_nowait(message)

    def make_app(self) -> web.Application:
        app = web.Application(client_max_size=MAX_BODY_SIZE)
        app.router.add_route("*", "/{path_info:.*}", self.handle_request)
        app.on_cleanup.append(self._on_cleanup)
        return app

    async def start(self):
        self.running = True
        self._stop_event.clear()
        self.runner = web.AppRunner(self.make_app())
        await self.runner.setup()
        try:
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()
            self.log(f"Proxy listening on {self.host}:{self.port}, forwarding to {self.config.target_url}")
            await self._stop_event.wait()
        finally:
            await self.runner.cleanup()
            self.running = False

    def stop(self):
        self.running = False
        self._stop_event.set()

    async def _ensure_session(self):
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout, auto_decompress=True)
        return self.session

    async def close(self):
        if self.session:
            await self.session.close()
            self.session = None

    async def _on_cleanup(self, app):
        await self.close()

    async def handle_request(self, request: web.Request) -> web.Response:
        body = await request.read()
        response = await self.resolve(request.method, request.raw_path, request.headers, body)
        return web.Response(status=response.status, headers=response.headers, body=response.body)

    async def resolve(self, method, path, headers=None, body=b"") -> ResponseSpec:
        """
        Answer one inbound request.

        `path` is the path with its query string exactly as received. A
        matching mock is served without contacting the target; anything else
        is forwarded. Either response is captured when a save directory is
        configured, then decorated with CORS and extra headers.
        """
        headers = headers if headers is not None else {}
        self.log(f"Incoming request: {method} {path}")
        self.log(format_headers_for_logging(headers, self.config.hide_headers))
        if body:
            self.log(format_body_for_logging(body, self.config.hide_body, "Request body"))

        rule = self.mock_engine.match(method, path) if self.mock_engine else None
        if rule is not None:
            self.log(f"[MOCK] Matched mock for method {rule.method} and path {rule.path}")
            response = await asyncio.to_thread(self.mock_engine.create_response, rule)
        else:
            try:
                response = await self.forward(method, path, headers, body)
            except UpstreamError as e:
                self.log(f"Error forwarding request: {e}", logging.ERROR)
                return self.finish(self.gateway_error(e))

        self.log(f"Response status: {response.status}")
        self.log(format_body_for_logging(response.body, self.config.hide_body, "Response body"))
        if self.request_store:
            await self.capture(method, path, response)
        return self.finish(response)

    async def forward(self, method, path, headers, body) -> ResponseSpec:
        url = self.config.target_url.rstrip("/") + path
        self.log(f"No mock matched. Forwarding to target URL: {url}")
        session = await self._ensure_session()
        try:
            async with session.request(
                method,
                URL(url, encoded=True),
                headers=strip_hop_by_hop(headers, REQUEST_SKIP_HEADERS),
                data=body or None,
                allow_redirects=False,
            ) as upstream:
                resp_body = await upstream.read()
                return ResponseSpec(
                    status=upstream.status,
                    headers=strip_hop_by_hop(upstream.headers, RESPONSE_SKIP_HEADERS),
                    body=resp_body,
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamError(url, e) from e

    def gateway_error(self, error: UpstreamError) -> ResponseSpec:
        payload = {
            "error": "bad_gateway",
            "message": f"Error forwarding request: {describe_error(error.cause)}",
            "url": error.url,
        }
        return ResponseSpec(
            status=502,
            headers=CIMultiDict({"Content-Type": "application/json"}),
            body=json.dumps(payload).encode("utf-8"),
        )

    async def capture(self, method, path, response: ResponseSpec):
        try:
            await self.request_store.record(
                method, path, response.status, response.body, response.headers.get("Content-Type")
            )
        except Exception as e:
            self.log(f"Capture failed for {method} {path}: {e}", logging.ERROR)

    def finish(self, response: ResponseSpec) -> ResponseSpec:
        response.headers = compose_headers(response.headers, self.config.add_cors_headers, self.extra_headers)
        return response
