"""Command-line interface for sending a single signed BOS request.

Example:
    bos-request /v1
    bos-request -X PUT -P acl= --data-file acl.json /v1/my-bucket
    bos-request -o listing.json /v1
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from bce_bos.auth import sign_function
from bce_bos.config import ConfigError, load_config
from bce_bos.console import ResponsePrinter
from bce_bos.http_client import BceClientError, BceServerError, HttpClient
from bce_bos.models import ClientConfig


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="bos-request",
        description="Send a signed request to a BOS endpoint",
    )

    parser.add_argument("path", help="Request path, e.g. /v1/my-bucket")

    parser.add_argument(
        "-c", "--config",
        default="config.json",
        help="Path to configuration file (default: config.json)",
    )

    parser.add_argument(
        "-X", "--method",
        default="GET",
        type=str.upper,
        choices=["GET", "PUT", "POST", "DELETE", "HEAD"],
        help="HTTP method (default: GET)",
    )

    body = parser.add_mutually_exclusive_group()
    body.add_argument("-d", "--data", help="Request body as a string")
    body.add_argument(
        "--data-file",
        metavar="PATH",
        help="Stream the request body from a file",
    )

    parser.add_argument(
        "-H", "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Extra request header (repeatable)",
    )

    parser.add_argument(
        "-P", "--param",
        action="append",
        default=[],
        metavar="KEY[=VALUE]",
        help="Query parameter (repeatable)",
    )

    parser.add_argument(
        "-o", "--output",
        metavar="PATH",
        help="Write the response body to a file instead of printing it",
    )

    parser.add_argument(
        "--no-sign",
        action="store_true",
        help="Send the request without an Authorization header",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Print only the response body",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def parse_headers(values: list[str]) -> dict[str, str]:
    """Parse 'Name: value' strings into a header mapping.

    Raises:
        ValueError: If an entry has no ':' separator.
    """
    headers = {}
    for item in values:
        if ":" not in item:
            raise ValueError(f"Invalid header (expected 'Name: value'): {item}")
        name, value = item.split(":", 1)
        headers[name.strip()] = value.strip()
    return headers


def parse_params(values: list[str]) -> dict[str, str]:
    """Parse 'key=value' (or bare 'key') strings into query parameters."""
    params = {}
    for item in values:
        key, _, value = item.partition("=")
        params[key] = value
    return params


async def send(args: argparse.Namespace, config: ClientConfig, printer: ResponsePrinter) -> int:
    """Send the request described by args and print the outcome.

    Returns:
        Exit code: 0 for success, 1 for HTTP errors, 2 for transport errors
    """
    headers = parse_headers(args.header)
    params = parse_params(args.param) or None
    signer = None if args.no_sign else sign_function

    body_file = None
    body = args.data
    if args.data_file:
        body_file = open(args.data_file, "rb")
        body = body_file
        if not any(name.lower() == "content-length" for name in headers):
            body_file.seek(0, 2)
            headers["Content-Length"] = str(body_file.tell())
            body_file.seek(0)

    try:
        async with HttpClient(config) as client:
            if args.output:
                with open(args.output, "wb") as output:
                    response = await client.send_request(
                        args.method, args.path, body, headers, params, signer, output
                    )
                    size = output.tell()
                printer.print_written(args.output, size)
            else:
                response = await client.send_request(
                    args.method, args.path, body, headers, params, signer
                )
                printer.print_response(args.method, args.path, response)
    except BceServerError as e:
        printer.print_error(e)
        return 1
    except BceClientError as e:
        printer.print_error(e)
        return 2
    finally:
        if body_file is not None:
            body_file.close()

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 for success, 1 for HTTP errors, 2 for configuration,
        usage or transport errors
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Load configuration
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    printer = ResponsePrinter(quiet=args.quiet)

    try:
        return asyncio.run(send(args, config, printer))
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
