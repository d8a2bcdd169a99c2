# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from mediaunion.app import (
    create_library_group,
    delete_library_group,
    get_item_history,
    get_popular,
    list_library_groups,
    reconcile_library,
    update_library_group,
)
from mediaunion.config import configure_logging
from mediaunion.domain.aggregation import SortBy
from mediaunion.domain.model import MediaType, RecordRef
from mediaunion.domain.time_windows import TimeRange

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from mediaunion.domain.aggregation import PopularItem, UserHistory
    from mediaunion.domain.model import Group

log = logging.getLogger(__name__)

_RANGES = [time_range.value for time_range in TimeRange]
_MEDIA_TYPES = [media_type.value for media_type in MediaType]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Unify media-server libraries and watch history")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser("reconcile", help="Merge source records into identities")
    reconcile.add_argument(
        "--full",
        action="store_true",
        help="Re-resolve every record instead of only unlinked ones",
    )

    popular = subparsers.add_parser("popular", help="Show the most watched titles")
    popular.add_argument("--range", choices=_RANGES, default=TimeRange.DAY.value)
    popular.add_argument(
        "--type",
        choices=_MEDIA_TYPES,
        help="Granularity: movies, shows (episodes rolled up) or single episodes",
    )
    popular.add_argument(
        "--sort",
        choices=[order.value for order in SortBy],
        default=SortBy.UNIQUE_USERS.value,
    )
    popular.add_argument("--limit", type=int, help="Number of titles (defaults to config)")

    history = subparsers.add_parser("history", help="Per-user plays of one title")
    history.add_argument("ref", help="Identity id or raw match key (e.g. imdb:tt1375666)")
    history.add_argument("--range", choices=_RANGES, default=TimeRange.DAY.value)
    history.add_argument(
        "--type",
        choices=_MEDIA_TYPES,
        help="Granularity the raw key was ranked at (as shown by popular --type)",
    )

    group = subparsers.add_parser("group", help="Group administration")
    group_sub = group.add_subparsers(dest="group_command", required=True)

    group_create = group_sub.add_parser("create", help="Create a group")
    group_create.add_argument("--name", required=True)
    group_create.add_argument(
        "--type", choices=[MediaType.MOVIE.value, MediaType.SHOW.value], required=True
    )
    group_create.add_argument(
        "--member",
        action="append",
        default=[],
        help="Member record as SERVER_ID:RECORD_KEY (repeatable)",
    )

    group_update = group_sub.add_parser("update", help="Rename a group or replace its members")
    group_update.add_argument("group_id")
    group_update.add_argument("--name")
    group_update.add_argument(
        "--member",
        action="append",
        help="Member record as SERVER_ID:RECORD_KEY (repeatable, replaces all members)",
    )

    group_delete = group_sub.add_parser("delete", help="Delete a group and its identities")
    group_delete.add_argument("group_id")

    group_sub.add_parser("list", help="List groups")

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _parse_member(value: str) -> RecordRef:
    server_id, separator, record_key = value.partition(":")
    if not separator or not server_id.strip() or not record_key.strip():
        raise ValueError(f"Invalid member {value!r}; expected SERVER_ID:RECORD_KEY")
    return RecordRef(server_id.strip(), record_key.strip())


def _print_popular(items: Sequence[PopularItem]) -> None:
    for rank, item in enumerate(items, start=1):
        year = f" ({item.year})" if item.year else ""
        print(
            f"{rank:>3}. {item.title}{year} [{item.media_type.value}] "
            f"users={item.unique_users} plays={item.total_plays} ref={item.ref}"
        )


def _print_history(histories: Sequence[UserHistory]) -> None:
    for history in histories:
        last = f"{history.last_watched:%Y-%m-%d %H:%M}"
        print(f"{history.user}: {history.play_count} plays, last {last}")
        for play in history.plays:
            numbering = (
                f" S{play.season:02d}E{play.episode:02d}"
                if play.season is not None and play.episode is not None
                else ""
            )
            percent = f" {play.percent}%" if play.percent is not None else ""
            print(f"    {play.started_at:%Y-%m-%d %H:%M} {play.title or '?'}{numbering}{percent}")


def _print_groups(groups: Sequence[Group]) -> None:
    for group in groups:
        members = ", ".join(f"{ref.server_id}:{ref.record_key}" for ref in group.member_refs())
        print(f"{group.id} {group.name} [{group.media_type.value}] {members}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        members: list[RecordRef] | None = None
        if parsed_args.command == "group":
            if parsed_args.group_command in {"update", "delete"}:
                parsed_args.group_id = _parse_uuid(parsed_args.group_id)
            if parsed_args.group_command in {"create", "update"} and parsed_args.member:
                members = [_parse_member(value) for value in parsed_args.member]
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    if parsed_args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        if parsed_args.command == "reconcile":
            result = reconcile_library(force_full_scan=parsed_args.full)
            log.info(
                "Reconciliation finished: created=%s, matched=%s, linked=%s, "
                "hierarchy_links=%s, merged=%s",
                result.created_count,
                result.matched_count,
                result.linked_count,
                result.hierarchy_link_count,
                result.merged_count,
            )
        elif parsed_args.command == "popular":
            _print_popular(
                get_popular(
                    parsed_args.range,
                    media_type=parsed_args.type,
                    sort_by=parsed_args.sort,
                    limit=parsed_args.limit,
                )
            )
        elif parsed_args.command == "history":
            _print_history(
                get_item_history(parsed_args.ref, parsed_args.range, media_type=parsed_args.type)
            )
        elif parsed_args.command == "group" and parsed_args.group_command == "create":
            group = create_library_group(parsed_args.name, parsed_args.type, members or [])
            log.info("Created group %s", group.id)
        elif parsed_args.command == "group" and parsed_args.group_command == "update":
            update_library_group(parsed_args.group_id, name=parsed_args.name, members=members)
        elif parsed_args.command == "group" and parsed_args.group_command == "delete":
            removed = delete_library_group(parsed_args.group_id)
            log.info("Deleted group %s (%s identities removed)", parsed_args.group_id, removed)
        elif parsed_args.command == "group" and parsed_args.group_command == "list":
            _print_groups(list_library_groups())
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console-script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
