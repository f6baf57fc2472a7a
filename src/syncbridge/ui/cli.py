# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from dataclasses import asdict
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from syncbridge.app import (
    build_sync_engine,
    create_for_source,
    link_entities,
    mappings,
    overview,
    purge_history,
    run_sync,
    stage_table,
    trigger_stage_change,
    unlink,
    unmatched_entities,
)
from syncbridge.config import configure_logging
from syncbridge.domain.errors import ConcurrentRunRejected, ValidationError
from syncbridge.domain.model import MatchType, SyncMode, SyncStatus
from syncbridge.domain.ports import MappingFilter

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from syncbridge.domain.model import SnapshotEntity
    from syncbridge.domain.sync import SyncEngine

log = logging.getLogger(__name__)

EXIT_USAGE = 2
EXIT_REJECTED = 3


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile and synchronise two record systems")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    mode_choices = [mode.value for mode in SyncMode]

    sync = subparsers.add_parser("sync", help="Run a full match-and-sync pass")
    sync.add_argument(
        "--mode",
        choices=mode_choices,
        default=SyncMode.DRY_RUN.value,
        help="Side-effect level (default: %(default)s)",
    )

    create = subparsers.add_parser("create", help="Match or create the counterpart of one source")
    create.add_argument("source_id")
    create.add_argument("--mode", choices=mode_choices, default=SyncMode.WRITE.value)

    trigger = subparsers.add_parser(
        "trigger", help="Handle an observed stage change of one source entity"
    )
    trigger.add_argument("source_id")
    trigger.add_argument("--current", required=True, help="Stage label observed now")
    trigger.add_argument("--previous", help="Stage label observed before, if any")
    trigger.add_argument("--mode", choices=mode_choices, default=SyncMode.WRITE.value)

    link = subparsers.add_parser("link", help="Create a manual mapping")
    link.add_argument("source_id")
    link.add_argument("target_id")
    link.add_argument(
        "--write-key",
        action="store_true",
        help="Write the source business key onto the target when it differs",
    )

    unlink_parser = subparsers.add_parser("unlink", help="Delete one mapping by id")
    unlink_parser.add_argument("mapping_id", type=int)

    list_parser = subparsers.add_parser("mappings", help="List stored mappings")
    list_parser.add_argument("--match-type", choices=[value.value for value in MatchType])
    list_parser.add_argument("--status", choices=[value.value for value in SyncStatus])
    list_parser.add_argument("--conflicts", action="store_true", help="Only conflicted ones")
    list_parser.add_argument("--limit", type=int)

    subparsers.add_parser("unmatched", help="List entities without a mapping")
    subparsers.add_parser("overview", help="Show mapping and run statistics")
    subparsers.add_parser("stages", help="Show the effective stage translation table")

    purge = subparsers.add_parser("purge-history", help="Delete old change history")
    purge.add_argument("--retention-days", type=int, help="Defaults to configuration (14)")

    args = parser.parse_args(list(argv))
    if getattr(args, "limit", None) is not None and args.limit < 1:
        raise ValueError("--limit must be positive")
    if getattr(args, "retention_days", None) is not None and args.retention_days < 0:
        raise ValueError("--retention-days must be non-negative")
    return args


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))


def _entity_row(entity: SnapshotEntity) -> dict[str, object]:
    return {"external_id": entity.external_id, "name": entity.display_name}


def _install_cancel_handler(engine: SyncEngine) -> None:
    """First Ctrl+C stops issuing writes; a second one exits."""

    def handler(_signal_received: int, _frame: FrameType | None) -> None:
        if engine.cancel_event.is_set():
            log.info("Closed by user (Ctrl+C)")
            sys.exit(0)
        log.warning("Cancelling: in-flight batches finish, no new writes are sent")
        engine.cancel()

    signal.signal(signal.SIGINT, handler)


def _dispatch(args: argparse.Namespace) -> None:  # noqa: C901
    command = args.command
    if command == "sync":
        engine = build_sync_engine()
        _install_cancel_handler(engine)
        summary = run_sync(SyncMode(args.mode), engine=engine)
        _print_json(
            {"status": summary.status, "duration_ms": summary.duration_ms, **summary.counts()}
        )
    elif command == "create":
        detail = create_for_source(args.source_id, SyncMode(args.mode))
        _print_json(asdict(detail))
    elif command == "trigger":
        detail = trigger_stage_change(
            args.source_id, args.previous, args.current, SyncMode(args.mode)
        )
        if detail is None:
            log.info("Stage %r is not a creation trigger; nothing to do", args.current)
        else:
            _print_json(asdict(detail))
    elif command == "link":
        mapping = link_entities(args.source_id, args.target_id, write_key=args.write_key)
        log.info("Created mapping %s", mapping.id)
    elif command == "unlink":
        unlink(args.mapping_id)
    elif command == "mappings":
        mapping_filter = MappingFilter(
            match_type=MatchType(args.match_type) if args.match_type else None,
            status=SyncStatus(args.status) if args.status else None,
            has_conflicts=True if args.conflicts else None,
            limit=args.limit,
        )
        _print_json(
            [
                {
                    "id": mapping.id,
                    "source_id": mapping.source_id,
                    "target_id": mapping.target_id,
                    "match_type": mapping.match_type,
                    "status": mapping.last_sync_status,
                    "conflicts": [conflict.as_dict() for conflict in mapping.conflicts],
                }
                for mapping in mappings(mapping_filter)
            ]
        )
    elif command == "unmatched":
        result = unmatched_entities()
        _print_json(
            {
                "sources": [_entity_row(entity) for entity in result.sources],
                "targets": [_entity_row(entity) for entity in result.targets],
            }
        )
    elif command == "overview":
        _print_json(asdict(overview()))
    elif command == "stages":
        _print_json(dict(stage_table()))
    elif command == "purge-history":
        removed = purge_history(retention_days=args.retention_days)
        log.info("Removed %d change history records", removed)
    else:
        raise ValueError(f"Unsupported command: {command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""

    if argv is None:
        load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        configure_logging()
        log.exception("CLI validation error")
        sys.exit(EXIT_USAGE)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _dispatch(parsed_args)
    except ConcurrentRunRejected as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(EXIT_REJECTED)
    except ValidationError as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(EXIT_USAGE)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal.signal(signal.SIGINT, sigint_handler)
    main()
