"""addiscare-notify CLI: list, count, read, read-all, hide, delete, send, broadcast, watch."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from addiscare.logging_config import configure_logging
from addiscare_client.adapters import (
    ComposeAdapter,
    HeaderBadgeAdapter,
    NotificationsPageAdapter,
    NotificationView,
    ViewState,
)
from addiscare_client.config import load_config
from addiscare_client.session import NotificationSession

TYPE_CHOICES = ["info", "alert", "success", "warning"]
ROLE_CHOICES = ["reporter", "government", "admin"]


def _format_row(n) -> str:
    marker = " " if n.read else "*"
    when = n.created_at.strftime("%Y-%m-%d %H:%M")
    sender = n.sender.name if n.sender is not None else "System"
    return f"{marker} {n.id}  {when}  [{n.type}] {n.title} ({sender})"


def _print_view(view: NotificationView) -> None:
    if view.banner:
        print(f"! {view.banner}")
    if not view.items:
        print("No notifications.")
    for n in view.items:
        print(_format_row(n))


def _build_session(args: argparse.Namespace) -> NotificationSession:
    config = load_config(args.config)
    if args.api_url:
        config = config.model_copy(update={"api_url": args.api_url})
    token = args.token or os.environ.get("ADDISCARE_TOKEN")
    if not token:
        print("Error: no token. Pass --token or set ADDISCARE_TOKEN.", file=sys.stderr)
        sys.exit(1)

    def on_invalid(error) -> None:
        print(f"Session rejected by server: {error.message}", file=sys.stderr)

    return NotificationSession(config, token, on_session_invalid=on_invalid)


async def _synced(session: NotificationSession) -> bool:
    result = await session.coordinator.refresh()
    if not result.ok:
        print(f"Error: {result.error.message} ({result.error.code})", file=sys.stderr)
    return result.ok


def _confirm_delete(args: argparse.Namespace):
    def confirm(notification, notification_id: str) -> bool:
        if args.yes:
            return True
        label = notification.title if notification is not None else notification_id
        answer = input(f"Permanently delete '{label}' for every recipient? [y/N] ")
        return answer.strip().lower() in ("y", "yes")

    return confirm


def _report(result) -> int:
    if result is None:
        print("Cancelled.")
        return 0
    if result.skipped:
        print("Nothing to do.")
        return 0
    if result.error is not None:
        print(f"Error: {result.error.message} ({result.error.code})", file=sys.stderr)
        return 1
    print("Done." if not result.already_resolved else "Already done on the server.")
    return 0


# --- Commands ---


async def cmd_list(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    page = NotificationsPageAdapter(session.store, session.coordinator, confirm=lambda *_: False,
                                    unread_only=args.unread)
    _print_view(page.view)
    page.close()
    return 0


async def cmd_count(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    print(session.store.get_snapshot().unread_count)
    return 0


async def cmd_read(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    return _report(await session.coordinator.mark_one_read(args.notification_id))


async def cmd_read_all(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    return _report(await session.coordinator.mark_all_read())


async def cmd_hide(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    return _report(await session.coordinator.hide(args.notification_id))


async def cmd_delete(session: NotificationSession, args: argparse.Namespace) -> int:
    if not await _synced(session):
        return 1
    page = NotificationsPageAdapter(session.store, session.coordinator, confirm=_confirm_delete(args))
    try:
        return _report(await page.delete(args.notification_id))
    finally:
        page.close()


def _print_send(compose: ComposeAdapter) -> int:
    result = compose.last_result
    if result.ok:
        if result.notification is not None:
            print(f"Sent {result.notification.id}")
        else:
            print(f"Sent to {result.count} users")
        return 0
    print(f"Error: {compose.error_message}", file=sys.stderr)
    for name, message in compose.field_errors.items():
        print(f"  {name}: {message}", file=sys.stderr)
    return 1


async def cmd_send(session: NotificationSession, args: argparse.Namespace) -> int:
    compose = ComposeAdapter(session.coordinator)
    await compose.send_to_user(args.title, args.message, args.recipient,
                               report_id=args.report, type=args.type, link=args.link)
    return _print_send(compose)


async def cmd_broadcast(session: NotificationSession, args: argparse.Namespace) -> int:
    compose = ComposeAdapter(session.coordinator)
    await compose.broadcast_to_role(args.title, args.message, args.role,
                                    report_id=args.report, type=args.type, link=args.link)
    return _print_send(compose)


class _WatchBadge(HeaderBadgeAdapter):
    """Prints the badge whenever it changes."""

    _last: str | None = None

    def render(self, view: NotificationView) -> None:
        if view.state is ViewState.ERROR:
            print(f"! {view.banner}", file=sys.stderr, flush=True)
            return
        if view.state is ViewState.LOADING:
            return
        text = self.badge_text or "0"
        if text != self._last:
            self._last = text
            latest = view.items[0].title if view.items else "-"
            print(f"unread: {text}  latest: {latest}", flush=True)


async def cmd_watch(session: NotificationSession, args: argparse.Namespace) -> int:
    badge = _WatchBadge(session.store, session.coordinator)
    try:
        while session.is_active:
            await asyncio.sleep(1)
    finally:
        badge.close()
    return 0


COMMANDS = {
    "list": cmd_list,
    "count": cmd_count,
    "read": cmd_read,
    "read-all": cmd_read_all,
    "hide": cmd_hide,
    "delete": cmd_delete,
    "send": cmd_send,
    "broadcast": cmd_broadcast,
    "watch": cmd_watch,
}


async def _run(args: argparse.Namespace) -> int:
    async with _build_session(args) as session:
        return await COMMANDS[args.command](session, args)


def _add_send_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--title", required=True, help="Notification title (max 200 chars)")
    p.add_argument("--message", required=True, help="Notification body")
    p.add_argument("--type", choices=TYPE_CHOICES, default="info")
    p.add_argument("--report", help="Related report ID")
    p.add_argument("--link", help="Deep link opened on click")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="addiscare-notify", description="AddisCare notifications client")
    parser.add_argument("--api-url", help="API base URL (overrides config)")
    parser.add_argument("--token", help="Bearer token (default: $ADDISCARE_TOKEN)")
    parser.add_argument("--config", help="Path to a TOML file with an [addiscare-client] table")
    parser.add_argument("--log-level", default="warning", help="Log level (default: warning)")
    sub = parser.add_subparsers(dest="command")

    p_list = sub.add_parser("list", help="Show recent notifications")
    p_list.add_argument("--unread", action="store_true", help="Only unread notifications")

    sub.add_parser("count", help="Print the unread count")

    p_read = sub.add_parser("read", help="Mark one notification read")
    p_read.add_argument("notification_id")

    sub.add_parser("read-all", help="Mark every notification read")

    p_hide = sub.add_parser("hide", help="Hide a notification for yourself")
    p_hide.add_argument("notification_id")

    p_delete = sub.add_parser("delete", help="Permanently delete a notification (sender or admin)")
    p_delete.add_argument("notification_id")
    p_delete.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")

    p_send = sub.add_parser("send", help="Send a notification to one user (admin)")
    p_send.add_argument("recipient", help="Recipient user ID")
    _add_send_options(p_send)

    p_bcast = sub.add_parser("broadcast", help="Send a notification to every user with a role (admin)")
    p_bcast.add_argument("role", choices=ROLE_CHOICES)
    _add_send_options(p_bcast)

    sub.add_parser("watch", help="Poll and print the unread badge until interrupted")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(args.log_level, service="addiscare-notify")
    try:
        code = asyncio.run(_run(args))
    except KeyboardInterrupt:
        code = 130
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
