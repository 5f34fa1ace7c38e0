#!/usr/bin/env python3
"""
Command-line interface for the storefront network.

Each process of the network is a subcommand, taking the same positional
arguments as the standalone process launchers.

Usage:
    python cli.py [--verbose] command [options]

Commands:
    nameserver  <port>
    bank        <port> <registry_port>
    content     <port> <content_file> <registry_port>
    store       <port> <stock_file> <registry_port>
    client      <request> <registry_port>      (0 lists, n buys the n-th item)
    demo        Run every server in-process and exercise them
    serve       Start the HTTP gateway
    test        Run the test suite

Examples:
    python cli.py nameserver 1234
    python cli.py bank 4001 1234
    python cli.py content 4002 data/content.txt 1234
    python cli.py store 4003 data/stock.txt 1234
    python cli.py client 2 1234

Exit codes (stable across all processes):
    1 bad arguments or data file, 2 registration failure, 3 listen failure,
    4 accept failure, 5 lookup failure, 6 name server unreachable,
    7 dependency unreachable
"""

import argparse
import logging
import subprocess
import sys
from typing import Optional

from shared.errors import BadArgumentsError, ExitCode, StartupError
from shared.models import Address, NodeConfig
from shared.protocol import BANK_NAME, CONTENT_NAME, DEFAULT_CREDIT_CARD, DEFAULT_HOST, STORE_NAME, parse_int

logger = logging.getLogger("cli")


class NetworkArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports bad arguments as BadArgumentsError (exit 1)."""

    def error(self, message):
        self.print_usage(sys.stderr)
        raise BadArgumentsError(f"Invalid command line arguments: {message}")


def port_arg(value: str) -> int:
    """A TCP port in 1-65535."""
    port = parse_int(value)
    if port is None or port < 1 or port > 65535:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}")
    return port


def request_arg(value: str) -> int:
    """A client request number: 0 to list, n > 0 to buy the n-th item."""
    request = parse_int(value)
    if request is None or request < 0:
        raise argparse.ArgumentTypeError(f"invalid request: {value!r}")
    return request


def _registry(args) -> Address:
    return Address(host=DEFAULT_HOST, port=args.registry_port)


def _node_config(args, name: str, dependencies: Optional[list[str]] = None) -> NodeConfig:
    return NodeConfig(
        name=name,
        port=args.port,
        registry=_registry(args),
        dependencies=dependencies or [],
        threaded=args.threaded,
    )


def run_nameserver(args) -> None:
    """Run the name server."""
    from discovery.name_server import run_name_server
    run_name_server(args.port, threaded=args.threaded)


def run_bank(args) -> None:
    """Register the Bank and serve validation requests."""
    from services.bank import BankService
    from services.node import ServiceNode

    ServiceNode(_node_config(args, BANK_NAME), BankService()).start().serve_forever()


def run_content(args) -> None:
    """Load content, register and serve content requests."""
    from services.content import ContentService
    from services.node import ServiceNode
    from shared.data_store import DataStore

    data_store = DataStore(content_file=args.content_file).load()
    ServiceNode(_node_config(args, CONTENT_NAME), ContentService(data_store)).start().serve_forever()


def run_store(args) -> None:
    """Load stock, register, connect to Bank and Content, serve clients."""
    from services.node import ServiceNode
    from services.store import StoreService
    from shared.data_store import DataStore

    data_store = DataStore(stock_file=args.stock_file).load()
    config = _node_config(args, STORE_NAME, [BANK_NAME, CONTENT_NAME])
    ServiceNode(config, StoreService(data_store)).start().serve_forever()


def run_client_command(args) -> None:
    """Perform one client request, or cycle through requests forever."""
    from services.client import client_config, run_client, run_cycle

    config = client_config(args.registry_port)
    if args.cycle:
        run_cycle(config)
    else:
        print(run_client(config, args.request, credit_card=args.credit_card), end="")


def run_demo(args) -> None:
    """Run the in-process demo network."""
    from services.demo import run_purchase_demo
    run_purchase_demo()


def run_server(args) -> None:
    """Start the HTTP gateway."""
    import uvicorn
    from api.main import app, configure_gateway

    configure_gateway(_registry(args))
    print(f"Starting gateway at http://{args.host}:{args.port}")
    print(f"API docs available at http://{args.host}:{args.port}/docs")
    uvicorn.run(app, host=args.host, port=args.port)


def run_tests(args) -> None:
    """Run the test suite."""
    cmd = [sys.executable, "-m", "pytest"] + args.pytest_args
    subprocess.run(cmd)


def build_parser() -> argparse.ArgumentParser:
    parser = NetworkArgumentParser(
        description="Storefront network CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s nameserver 1234
  %(prog)s store 4003 data/stock.txt 1234
  %(prog)s client 0 1234
  %(prog)s demo
  %(prog)s serve --registry-port 1234
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log received messages")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Name server
    ns_parser = subparsers.add_parser("nameserver", help="Run the name server")
    ns_parser.add_argument("port", type=port_arg, help="Port to listen on")
    ns_parser.add_argument("--threaded", action="store_true", help="One worker thread per connection")
    ns_parser.set_defaults(handler=run_nameserver)

    # Bank
    bank_parser = subparsers.add_parser("bank", help="Run the Bank")
    bank_parser.add_argument("port", type=port_arg, help="Port to listen on")
    bank_parser.add_argument("registry_port", type=port_arg, help="Name server port")
    bank_parser.add_argument("--threaded", action="store_true", help="One worker thread per connection")
    bank_parser.set_defaults(handler=run_bank)

    # Content
    content_parser = subparsers.add_parser("content", help="Run the Content server")
    content_parser.add_argument("port", type=port_arg, help="Port to listen on")
    content_parser.add_argument("content_file", help="Content file, relative to the working directory")
    content_parser.add_argument("registry_port", type=port_arg, help="Name server port")
    content_parser.add_argument("--threaded", action="store_true", help="One worker thread per connection")
    content_parser.set_defaults(handler=run_content)

    # Store
    store_parser = subparsers.add_parser("store", help="Run the Store")
    store_parser.add_argument("port", type=port_arg, help="Port to listen on")
    store_parser.add_argument("stock_file", help="Stock file, relative to the working directory")
    store_parser.add_argument("registry_port", type=port_arg, help="Name server port")
    store_parser.add_argument("--threaded", action="store_true", help="One worker thread per connection")
    store_parser.set_defaults(handler=run_store)

    # Client
    client_parser = subparsers.add_parser("client", help="List or buy from the Store")
    client_parser.add_argument("request", type=request_arg, help="0 to list, n to buy the n-th item")
    client_parser.add_argument("registry_port", type=port_arg, help="Name server port")
    client_parser.add_argument("--credit-card", default=DEFAULT_CREDIT_CARD, help="Card number to buy with")
    client_parser.add_argument("--cycle", action="store_true", help="Repeat requests 0-10 forever")
    client_parser.set_defaults(handler=run_client_command)

    # Demo
    demo_parser = subparsers.add_parser("demo", help="Run every server in-process")
    demo_parser.set_defaults(handler=run_demo)

    # Serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP gateway")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=port_arg, default=8000, help="Port to bind to")
    serve_parser.add_argument("--registry-port", type=port_arg, required=True, help="Name server port")
    serve_parser.set_defaults(handler=run_server)

    # Test
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument("pytest_args", nargs="*", default=[], help="Arguments to pass to pytest")
    test_parser.set_defaults(handler=run_tests)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns the process exit code; StartupErrors become their exit code here
    and nowhere else.
    """
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except BadArgumentsError as e:
        print(e, file=sys.stderr)
        return e.exit_code

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if not getattr(args, "handler", None):
        parser.print_help()
        return ExitCode.OK

    try:
        args.handler(args)
    except StartupError as e:
        logger.error(str(e))
        return e.exit_code
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return ExitCode.OK


if __name__ == "__main__":
    sys.exit(main())
