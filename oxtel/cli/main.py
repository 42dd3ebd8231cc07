from __future__ import annotations

from pathlib import Path
from typing import Optional

from oxtel.core.errors import OxtelError

from oxtel.cli.args import parse_args
from oxtel.cli.commands import (
    cmd_monitor,
    cmd_query,
    cmd_send,
    configure_logging,
)


def main(argv: Optional[list[str]] = None) -> int:
    try:
        args, cfg = parse_args(argv)
        configure_logging(cfg.log_level, Path(args.log_file) if args.log_file else None)

        if args.cmd == "monitor":
            return cmd_monitor(cfg, secs=args.secs)
        if args.cmd == "send":
            return cmd_send(cfg, raw=args.raw)
        if args.cmd == "query":
            return cmd_query(cfg, prefix=args.prefix, params=args.params)

        return 2
    except OxtelError as e:
        print(f"ERROR: {e.message}")
        if e.hint:
            print(f"Hint: {e.hint}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
