from __future__ import annotations

import argparse
from typing import Any, Dict, Optional, Tuple

from oxtel.app.config import LOG_LEVELS, OxtelConfig, build_config, load_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="oxtel")
    sub = parser.add_subparsers(dest="cmd", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=None, help="YAML config file (address, port, timeouts, ...).")
    common.add_argument("--address", default=None, help="Device host name or IP address.")
    common.add_argument("--port", type=int, default=None)
    common.add_argument("--timeout", type=float, default=None, help="Response timeout in seconds.")
    common.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS)
    common.add_argument("--log-file", default=None, help="Also write logs to this file.")

    p_monitor = sub.add_parser("monitor", parents=[common], help="Print unsolicited tallies.")
    p_monitor.add_argument("--secs", type=float, default=None, help="Stop after N seconds (default: run until Ctrl+C).")

    p_send = sub.add_parser("send", parents=[common], help="Send one fire-and-forget command.")
    p_send.add_argument("raw", help="Command text (escaped on the wire).")

    p_query = sub.add_parser("query", parents=[common], help="Send a command and print the correlated reply.")
    p_query.add_argument("prefix", help="Command code the reply starts with, e.g. Ua.")
    p_query.add_argument("params", nargs="?", default="", help="Command parameters appended to the prefix.")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> Tuple[argparse.Namespace, OxtelConfig]:
    """
    Returns: (args, config)

    CLI flags override values from --config; ConfigError surfaces invalid combinations.
    """
    args = build_parser().parse_args(argv)

    overrides: Dict[str, Any] = {
        "address": args.address,
        "port": args.port,
        "response_timeout_s": args.timeout,
        "log_level": args.log_level,
    }

    if args.config:
        cfg = load_config(args.config, overrides)
    else:
        cfg = build_config({k: v for k, v in overrides.items() if v is not None})

    return args, cfg
