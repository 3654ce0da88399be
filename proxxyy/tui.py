from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.widgets import Header, Footer, Input, Label, Switch, TextArea
import asyncio
import logging

from .config import RelayConfig
from .errors import RelayError
from .proxy_core import ProxyServer


class ProxyTui(App):
    CSS = """
    Screen {
        layout: grid;
        grid-size: 2;
        grid-columns: 2fr 3fr;
    }

    .sidebar {
        overflow-y: auto;
    }

    .control-box {
        border: round $accent;
        padding: 0 1;
        height: auto;
    }

    .box-title {
        color: $accent;
        text-style: bold;
    }

    .switch-row {
        height: auto;
    }

    .status-on {
        color: $success;
    }

    .status-off {
        color: $error;
    }

    #logs {
        height: 1fr;
    }
    """

    def __init__(self, config=None):
        super().__init__()
        self.initial_config = config or RelayConfig(target_url="")
        self.proxy_server = None
        self.proxy_worker = None
        self.log_queue = asyncio.Queue()

    def compose(self) -> ComposeResult:
        config = self.initial_config
        yield Header(show_clock=True)

        with VerticalScroll(classes="sidebar"):
            with Container(classes="control-box"):
                yield Label(" Proxy Control", classes="box-title")
                with Horizontal(classes="switch-row"):
                    yield Switch(id="toggle_proxy")
                    yield Label(" OFFLINE", id="status_label", classes="status-off")
                yield Label("Listen URL")
                yield Input(placeholder="http://localhost:6969", value=config.api_url, id="api_url")
                yield Label("Target URL (requests without a mock go here)")
                yield Input(placeholder="https://api.example.com/", value=config.target_url, id="target_url")

            with Container(classes="control-box"):
                yield Label(" Mocks & Recording", classes="box-title")
                yield Label("Mock config (TOML catalog)")
                yield Input(placeholder="mocks.toml", value=config.mock_config or "", id="mock_config")
                yield Label("Save directory (record responses as mocks)")
                yield Input(placeholder="/tmp/captures", value=config.save_request_directory or "", id="save_dir")

            with Container(classes="control-box"):
                yield Label(" Response Headers", classes="box-title")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=config.add_cors_headers, id="cors")
                    yield Label(" CORS headers")
                yield Label("Extra Header (Name: value)")
                yield Input(placeholder="X-Proxy: yes", value=(config.extra_headers or ("",))[0], id="header")

            with Container(classes="control-box"):
                yield Label(" Privacy", classes="box-title")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=config.hide_headers, id="hide_headers")
                    yield Label(" Hide request headers")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=config.hide_body, id="hide_body")
                    yield Label(" Hide bodies")

        with Vertical(classes="traffic"):
            yield Label("📋 Traffic Logs (Select text, Ctrl+C to copy)")
            yield TextArea(id="logs", read_only=True, show_line_numbers=False)

        yield Footer()

    async def on_mount(self):
        self.log_worker = asyncio.create_task(self.process_logs())

    async def on_unmount(self):
        self.log_worker.cancel()
        self.stop_proxy()

    async def process_logs(self):
        log_widget = self.query_one("#logs", TextArea)
        while True:
            msg = await self.log_queue.get()
            log_widget.load_text(log_widget.text + msg + "\n")

    def build_config(self) -> RelayConfig:
        header = self.query_one("#header", Input).value.strip()
        return RelayConfig(
            target_url=self.query_one("#target_url", Input).value.strip(),
            api_url=self.query_one("#api_url", Input).value.strip(),
            add_cors_headers=self.query_one("#cors", Switch).value,
            extra_headers=((header,) if header else ()) + self.initial_config.extra_headers[1:],
            mock_config=self.query_one("#mock_config", Input).value.strip() or None,
            save_request_directory=self.query_one("#save_dir", Input).value.strip() or None,
            hide_headers=self.query_one("#hide_headers", Switch).value,
            hide_body=self.query_one("#hide_body", Switch).value,
            upstream_timeout=self.initial_config.upstream_timeout,
        )

    async def on_switch_changed(self, event: Switch.Changed) -> None:
        if event.switch.id != "toggle_proxy":
            return
        status_label = self.query_one("#status_label", Label)
        if event.value and await self.start_proxy():
            status_label.update(" ONLINE")
            status_label.remove_class("status-off")
            status_label.add_class("status-on")
        else:
            status_label.update(" OFFLINE")
            status_label.remove_class("status-on")
            status_label.add_class("status-off")
            self.stop_proxy()

    async def start_proxy(self) -> bool:
        config = self.build_config()
        try:
            config.validate()
            self.proxy_server = ProxyServer(config)
        except RelayError as e:
            logging.getLogger("ProxyCore").error(e)
            await self.log_queue.put(f"✗ {e}")
            return False

        self.proxy_server.log_queue = self.log_queue
        self.proxy_worker = asyncio.create_task(self.proxy_server.start())
        self.proxy_worker.add_done_callback(self._on_proxy_exit)

        features = []
        if self.proxy_server.mock_engine:
            features.append(f"Mocks:{len(self.proxy_server.mock_engine.rules)}")
        if config.save_request_directory:
            features.append(f"Recording:{config.save_request_directory}")
        if config.add_cors_headers:
            features.append("CORS")
        if config.extra_headers:
            features.append(f"Headers:{len(config.parsed_extra_headers())}")
        if config.hide_headers or config.hide_body:
            features.append("Privacy")
        if features:
            await self.log_queue.put(f"  Active: {', '.join(features)}")
        return True

    def _on_proxy_exit(self, task):
        if not task.cancelled() and task.exception():
            self.log_queue.put_nowait(f"✗ Proxy failed: {task.exception()}")

    def stop_proxy(self):
        if self.proxy_server and self.proxy_server.running:
            self.proxy_server.stop()
            self.log_queue.put_nowait("✗ Proxy stopped")
        self.proxy_server = None
        self.proxy_worker = None
