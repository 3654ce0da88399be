import argparse
import asyncio
import logging
import os
import sys

# Allow running as "python proxxyy/" by adding parent to path
if __package__ in (None, "") and not hasattr(sys, "frozen"):
    path = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    sys.path.insert(0, path)

from proxxyy.config import RelayConfig
from proxxyy.errors import RelayError
from proxxyy.proxy_core import ProxyServer

logger = logging.getLogger("ProxyCore")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="proxxyy",
        description="HTTP relay that forwards to a target, serves mocks and records traffic as mocks",
    )
    parser.add_argument("--target-url", "-t", required=True, help="URL requests are proxied to")
    parser.add_argument("--api-url", "-u", required=True, help="URL the proxy listens on, e.g. http://localhost:6969")
    parser.add_argument("--add-cors-headers", "-c", action="store_true", help="add permissive CORS headers to responses")
    parser.add_argument(
        "--extra-header", "-e", dest="extra_headers", action="append", default=[],
        help="'Header-Name: value' added to every response, can be repeated",
    )
    parser.add_argument("--mock-config", "-m", help="TOML file describing mock endpoints")
    parser.add_argument(
        "--save-request-directory", "-s",
        help="directory where responses are saved together with a replayable mocked-request.toml",
    )
    parser.add_argument("--hide-headers", "-H", action="store_true", help="do not log request headers")
    parser.add_argument("--hide-body", "-b", action="store_true", help="do not log bodies")
    parser.add_argument("--timeout", type=float, default=30.0, help="upstream timeout in seconds")
    parser.add_argument("--tui", action="store_true", help="open the traffic console")
    return parser


def config_from_args(args) -> RelayConfig:
    return RelayConfig(
        target_url=args.target_url,
        api_url=args.api_url,
        add_cors_headers=args.add_cors_headers,
        extra_headers=tuple(args.extra_headers),
        mock_config=args.mock_config,
        save_request_directory=args.save_request_directory,
        hide_headers=args.hide_headers,
        hide_body=args.hide_body,
        upstream_timeout=args.timeout,
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    if args.tui:
        from proxxyy.tui import ProxyTui
        # The console shows traffic itself, keep stderr quiet
        logging.basicConfig(handlers=[logging.NullHandler()])
        ProxyTui(config).run()
        return 0

    logging.basicConfig(level=logging.INFO, format="[%(asctime)s %(levelname)s %(name)s] %(message)s")
    try:
        config.validate()
        server = ProxyServer(config)
    except RelayError as e:
        logger.error(e)
        return 1

    logger.info(f"Starting proxy with config: {config}")
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
