from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Sequence

from .bridge import SmsBridge, configure_channel
from .channel import BinaryMessenger, MethodChannel
from .config import configure_logging, get_settings
from .db import init_db
from .permissions import (
    PermissionBroker,
    PermissionRequestAlreadyResolved,
    PermissionRequestNotFound,
)
from .sms import SEND_SMS_PERMISSION, Operation, Success
from .telephony import get_sms_manager


def _local_channel(broker: PermissionBroker) -> MethodChannel:
    """Wire a bridge in this process, the same way the HTTP host does."""
    settings = get_settings()
    bridge = SmsBridge(
        permissions=broker,
        sms_manager=get_sms_manager(settings),
        request_code=settings.permission_request_code,
        wait_timeout=settings.permission_wait_timeout,
    )
    return configure_channel(BinaryMessenger(), bridge, name=settings.channel_name)


def cmd_send(args: argparse.Namespace, broker: PermissionBroker) -> int:
    channel = _local_channel(broker)
    result = channel.invoke_method(
        Operation.SEND_SMS.value, {"phone": args.phone, "message": args.message}
    )
    if isinstance(result, Success):
        print(result.value)
        return 0
    print(f"{result.code}: {result.message}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace, broker: PermissionBroker) -> int:
    granted = broker.check(SEND_SMS_PERMISSION)
    print(f"{SEND_SMS_PERMISSION}: {'granted' if granted else 'not granted'}")
    return 0


def cmd_requests(args: argparse.Namespace, broker: PermissionBroker) -> int:
    for req in broker.list_requests(args.limit):
        print(
            f"#{req.id} | {req.permission} | code={req.request_code} | "
            f"{req.status} | at={req.created_at}"
        )
    return 0


def _resolve(request_id: int, granted: bool, broker: PermissionBroker) -> int:
    try:
        req = broker.resolve(request_id, granted=granted)
    except (PermissionRequestNotFound, PermissionRequestAlreadyResolved) as e:
        print(str(e), file=sys.stderr)
        return 1
    print(json.dumps({"id": req.id, "status": str(req.status)}))
    return 0


def cmd_grant(args: argparse.Namespace, broker: PermissionBroker) -> int:
    return _resolve(args.request_id, True, broker)


def cmd_deny(args: argparse.Namespace, broker: PermissionBroker) -> int:
    return _resolve(args.request_id, False, broker)


def cmd_revoke(args: argparse.Namespace, broker: PermissionBroker) -> int:
    broker.revoke(SEND_SMS_PERMISSION)
    print(f"{SEND_SMS_PERMISSION}: revoked")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sms-bridge",
        description="Send SMS through the bridge and answer its permission prompts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    send = sub.add_parser("send", help="Call sendSMS on the channel.")
    send.add_argument("--phone", required=True, help="Destination number.")
    send.add_argument("--message", required=True, help="Message body.")
    send.set_defaults(func=cmd_send)

    status = sub.add_parser("status", help="Show whether SEND_SMS is granted.")
    status.set_defaults(func=cmd_status)

    requests = sub.add_parser("requests", help="List recent permission prompts.")
    requests.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Number of most recent prompts to show (default: 20).",
    )
    requests.set_defaults(func=cmd_requests)

    grant = sub.add_parser("grant", help="Grant a pending prompt.")
    grant.add_argument("request_id", type=int)
    grant.set_defaults(func=cmd_grant)

    deny = sub.add_parser("deny", help="Deny a pending prompt.")
    deny.add_argument("request_id", type=int)
    deny.set_defaults(func=cmd_deny)

    revoke = sub.add_parser("revoke", help="Withdraw the SEND_SMS grant.")
    revoke.set_defaults(func=cmd_revoke)

    return parser


def main(argv: Sequence[str] | None = None, broker: PermissionBroker | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    if broker is None:
        init_db()
        broker = PermissionBroker()
    return args.func(args, broker)


if __name__ == "__main__":
    sys.exit(main())
