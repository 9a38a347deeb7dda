import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import http.client as http_client

from .config import MigrationConfig, load_env_file
from .core.archive import DEFAULT_ARCHIVE
from .core.batcher import DEFAULT_MAX_BATCH_BYTES, set_field
from .core.coordinator import Coordinator
from .core.exporter import DEFAULT_EXPORT_FIELDS, DEFAULT_EXPORT_LIMIT
from .core.poller import EXPORT_POLICY, IMPORT_POLICY, PollPolicy
from .errors import ConfigError, MigrationError

def loggable_args(ns: argparse.Namespace) -> dict:
    """Return a dict copy of args without the dispatch callable."""
    data = vars(ns).copy()
    data.pop("handler", None)
    return data


def configure_logging(debug: bool, log_file: Optional[Path]) -> None:
    level = logging.DEBUG if debug else logging.INFO
    handlers: List[logging.Handler] = []
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    else:
        handlers.append(logging.StreamHandler(sys.stderr))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )

    if debug:
        http_client.HTTPConnection.debuglevel = 1  # type: ignore[attr-defined]
        for noisy in ("urllib3", "requests"):
            logging.getLogger(noisy).setLevel(logging.DEBUG)
            logging.getLogger(noisy).propagate = True


def _email_verified_transform(choice: str):
    if choice == "keep":
        return None
    return set_field("email_verified", choice == "true")


def _positive_int(value: str) -> int:
    n = int(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return n


def _positive_float(value: str) -> float:
    n = float(value)
    if n <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return n


def cmd_export(args: argparse.Namespace, coord: Coordinator) -> None:
    path = coord.run_export(fields=args.fields or DEFAULT_EXPORT_FIELDS, limit=args.limit)
    logging.getLogger("cli").info("Export archive ready at %s", path)


def cmd_import(args: argparse.Namespace, coord: Coordinator) -> None:
    coord.run_import(
        max_batch_bytes=args.max_batch_bytes,
        transform=_email_verified_transform(args.email_verified),
        upsert=args.upsert,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tenant-migration",
        description="Copy users from a source Auth0 tenant into a destination tenant",
    )
    p.add_argument("--env-file", type=Path, default=None,
                   help="Load credentials from this .env file (default: ./.env).")
    p.add_argument("--timeout", type=_positive_float, default=None,
                   help="HTTP timeout in seconds for Management API calls.")
    p.add_argument("--debug", action="store_true",
                   help="Enable verbose debug logging (incl. HTTP wire logs).")
    p.add_argument("--log-file", type=Path, default=None,
                   help="Write logs to this file instead of stderr.")

    sub = p.add_subparsers(dest="command", required=True)

    exp = sub.add_parser("export", help="Export users from the source tenant")
    exp.add_argument("-f", "--field", dest="fields", action="append",
                     help="User field to export (repeatable). Example: -f user_id -f email. "
                          f"Default: {', '.join(DEFAULT_EXPORT_FIELDS)}")
    exp.add_argument("--limit", type=_positive_int, default=DEFAULT_EXPORT_LIMIT,
                     help="Maximum number of users in the export job.")
    exp.add_argument("--archive", type=Path, default=DEFAULT_ARCHIVE,
                     help="Where to save the exported archive.")
    exp.add_argument("--poll-interval", type=_positive_float,
                     default=EXPORT_POLICY.initial_interval,
                     help="Seconds between export status checks.")
    exp.add_argument("--poll-timeout", type=_positive_float, default=EXPORT_POLICY.max_wait,
                     help="Give up waiting for the export after this many seconds.")
    exp.set_defaults(handler=cmd_export)

    imp = sub.add_parser("import", help="Import users into the destination tenant in batches")
    imp.add_argument("--archive", type=Path, default=DEFAULT_ARCHIVE,
                     help="Exported archive to read.")
    imp.add_argument("--max-batch-bytes", type=_positive_int, default=DEFAULT_MAX_BATCH_BYTES,
                     help="Upper bound for the serialized size of one import batch.")
    imp.add_argument("--email-verified", choices=("true", "false", "keep"), default="true",
                     help="Force email_verified on every user, or keep the exported value.")
    imp.add_argument("--no-upsert", dest="upsert", action="store_false",
                     help="Fail on existing users instead of updating them.")
    imp.add_argument("--poll-interval", type=_positive_float,
                     default=IMPORT_POLICY.initial_interval,
                     help="Initial seconds between import status checks (doubles each time).")
    imp.add_argument("--poll-max-interval", type=_positive_float,
                     default=IMPORT_POLICY.max_interval,
                     help="Longest wait between two import status checks.")
    imp.add_argument("--poll-timeout", type=_positive_float, default=IMPORT_POLICY.max_wait,
                     help="Give up waiting for one import job after this many seconds.")
    imp.set_defaults(handler=cmd_import)
    return p


def build_policies(args: argparse.Namespace) -> dict:
    if args.command == "export":
        return {"export_policy": PollPolicy.fixed(args.poll_interval, args.poll_timeout)}
    max_interval = max(args.poll_max_interval, args.poll_interval)
    return {"import_policy": PollPolicy(args.poll_interval, IMPORT_POLICY.growth_factor,
                                        max_interval, args.poll_timeout)}


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug, args.log_file)

    log = logging.getLogger("cli")
    log.debug("Parsed args: %s", loggable_args(args))

    try:
        load_env_file(args.env_file)
        config = MigrationConfig.from_env()
        log.debug("Loaded %r", config)
        coord = Coordinator.from_config(
            config,
            archive_path=args.archive,
            timeout=args.timeout,
            **build_policies(args),
        )
    except (ConfigError, ValueError) as e:
        log.error("Configuration error: %s", e)
        sys.exit(2)

    signal.signal(signal.SIGTERM, lambda signum, frame: coord.cancel_event.set())

    try:
        args.handler(args, coord)
        log.info("Done.")
    except KeyboardInterrupt:
        log.warning("Interrupted by user.")
        sys.exit(130)
    except MigrationError as e:
        log.error("%s failed: %s", args.command.capitalize(), e)
        sys.exit(1)
    except Exception:
        log.exception("Unhandled error during execution")
        sys.exit(1)
    finally:
        coord.close()


if __name__ == "__main__":

    main()
