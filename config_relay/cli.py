import argparse
import logging
import sys
from pathlib import Path

import httpx
import uvicorn

from config_relay.base import PropertySnapshot, PropertyStore
from config_relay.client import ConfigClient
from config_relay.errors import ConfigRelayError
from config_relay.http import HttpFetcher, create_client_app, create_server_app
from config_relay.impl.git import GitPropertyStore
from config_relay.properties import format_properties
from config_relay.scenario import run_scenario
from config_relay.server import DEFAULT_PROFILE, ConfigServer

logger = logging.getLogger("config_relay")


def print_snapshot(snapshot: PropertySnapshot) -> None:
    print(f"# version: {snapshot.version}")
    sys.stdout.write(format_properties(snapshot.properties))
    sys.stdout.flush()


def parse_application(value: str) -> tuple[str, str]:
    """Split ``NAME[=FILE]``; the file defaults to ``NAME.properties``."""
    name, sep, file_name = value.partition("=")
    if not name:
        raise argparse.ArgumentTypeError(f"invalid application {value!r}")
    return name, file_name if sep and file_name else f"{name}.properties"


def build_stores(args: argparse.Namespace) -> dict[str, PropertyStore]:
    applications = args.application or [("application", "application.properties")]
    return {
        name: GitPropertyStore(
            args.repo,
            file_name=file_name,
            remote_url=args.remote_url,
            branch=args.branch,
            timeout=args.timeout,
        )
        for name, file_name in applications
    }


def cmd_show(args: argparse.Namespace) -> int:
    if args.server_url:
        fetcher = HttpFetcher(
            args.server_url, args.app, args.profile, timeout=args.timeout
        )
        try:
            snapshot = fetcher()
        finally:
            fetcher.close()
    elif args.repo:
        store = GitPropertyStore(args.repo, file_name=args.file, ref=args.ref, timeout=args.timeout)
        snapshot = store.read()
    else:
        raise SystemExit("show: either --repo or --server-url is required")

    print_snapshot(snapshot)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    server = ConfigServer(build_stores(args))
    logger.info(
        "Serving %s from %s on %s:%s",
        ", ".join(server.applications()),
        args.repo,
        args.host,
        args.port,
    )
    uvicorn.run(create_server_app(server), host=args.host, port=args.port)
    return 0


def cmd_client(args: argparse.Namespace) -> int:
    client = ConfigClient(
        HttpFetcher(args.server_url, args.app, args.profile, timeout=args.timeout)
    )
    client.bootstrap()

    def log_change(key: str, value: str | None) -> None:
        logger.info("%s is now %r", key, value)

    for key in args.key:
        client.bind(key, log_change)

    logger.info("Client for %s listening on %s:%s", args.app, args.host, args.port)
    uvicorn.run(create_client_app(client), host=args.host, port=args.port)
    return 0


def cmd_refresh(args: argparse.Namespace) -> int:
    url = args.client_url.rstrip("/") + "/refresh"
    try:
        response = httpx.post(url, timeout=args.timeout)
    except httpx.HTTPError as e:
        print(f"error: cannot reach {url}: {e}", file=sys.stderr)
        return 1

    if response.status_code != 200:
        print(f"error: refresh failed ({response.status_code}): {response.text}", file=sys.stderr)
        return 1

    for key in response.json():
        print(key)
    return 0


def cmd_demo(args: argparse.Namespace) -> int:
    run_scenario(args.workdir)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="config-relay", description="Git backed, explicitly refreshed configuration"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--timeout", type=float, default=10.0, help="Timeout in seconds for git and HTTP calls"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the current snapshot")
    show.add_argument("--repo", type=Path, help="Path to a local git repository")
    show.add_argument("--file", default="application.properties", help="Properties file in the repository")
    show.add_argument("--ref", default="HEAD", help="Git ref to read")
    show.add_argument("--server-url", help="Read from a running config server instead")
    show.add_argument("--application", dest="app", default="application", help="Application name")
    show.add_argument("--profile", default=DEFAULT_PROFILE, help="Profile name")
    show.set_defaults(func=cmd_show)

    serve = sub.add_parser("serve", help="Run the config server")
    serve.add_argument("--repo", type=Path, required=True, help="Path to the git repository")
    serve.add_argument(
        "--application",
        type=parse_application,
        action="append",
        help="NAME[=FILE] to serve, FILE defaults to NAME.properties (repeatable)",
    )
    serve.add_argument("--remote-url", default=None, help="Clone and fetch from this remote")
    serve.add_argument("--branch", default="master", help="Remote branch to track")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8888)
    serve.set_defaults(func=cmd_serve)

    client = sub.add_parser("client", help="Run a client exposing POST /refresh")
    client.add_argument("--server-url", required=True, help="Config server base URL")
    client.add_argument("--application", dest="app", required=True, help="Application name")
    client.add_argument("--profile", default=DEFAULT_PROFILE, help="Profile name")
    client.add_argument("--key", action="append", default=[], help="Property key to bind (repeatable)")
    client.add_argument("--host", default="127.0.0.1")
    client.add_argument("--port", type=int, default=8080)
    client.set_defaults(func=cmd_client)

    refresh = sub.add_parser("refresh", help="Trigger a refresh on a running client")
    refresh.add_argument("--client-url", required=True, help="Client base URL")
    refresh.set_defaults(func=cmd_refresh)

    demo = sub.add_parser("demo", help="Run the hot reload walkthrough")
    demo.add_argument("--workdir", type=Path, required=True, help="Empty directory to work in")
    demo.set_defaults(func=cmd_demo)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except ConfigRelayError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
