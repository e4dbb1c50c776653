#!/usr/bin/env python3
"""
CLI tool for working a lost & found approval queue.

Usage:
    python -m lostfound_svc.cli queue CAMPUS_COORDINATOR --org NEU-CURRY
    python -m lostfound_svc.cli mine student@neu.edu
    python -m lostfound_svc.cli show WR-000001
    python -m lostfound_svc.cli approve WR-000001 coordinator@neu.edu
    python -m lostfound_svc.cli reject WR-000001 coordinator@neu.edu "No proof of ownership"
    python -m lostfound_svc.cli cancel WR-000001 student@neu.edu
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx
from colorama import Fore, Style, init as colorama_init

colorama_init()

STATUS_COLORS = {
    "PENDING": Fore.YELLOW,
    "IN_PROGRESS": Fore.CYAN,
    "APPROVED": Fore.GREEN,
    "REJECTED": Fore.RED,
    "CANCELLED": Style.DIM,
}

PRIORITY_COLORS = {
    "URGENT": Fore.RED,
    "HIGH": Fore.MAGENTA,
    "NORMAL": "",
    "LOW": Style.DIM,
}


def colorize(text: str, color: str) -> str:
    if not color:
        return text
    return f"{color}{text}{Style.RESET_ALL}"


def format_request_line(req: dict) -> str:
    """One-line summary of a request for queue listings."""
    status = req.get("status", "")
    priority = req.get("priority", "")
    chain = req.get("approval_chain", [])
    step = req.get("approval_step", 0)
    return (
        f"{colorize(req.get('request_id', '?'), Style.BRIGHT)}  "
        f"{colorize(f'{priority:<6}', PRIORITY_COLORS.get(priority, ''))}  "
        f"{colorize(f'{status:<11}', STATUS_COLORS.get(status, ''))}  "
        f"{req.get('request_type', '')}  step {step}/{len(chain)}  "
        f"{colorize(req.get('requester_id', ''), Style.DIM)}"
    )


def print_request(req: dict) -> None:
    """Pretty print a full request with its audit trail."""
    print(colorize("\nRequest:", Style.BRIGHT), req.get("request_id"))
    print(colorize("Type:", Style.BRIGHT), req.get("request_type"))
    status = req.get("status", "")
    print(colorize("Status:", Style.BRIGHT), colorize(status, STATUS_COLORS.get(status, "")))
    print(colorize("Priority:", Style.BRIGHT), req.get("priority"))
    print(colorize("Requester:", Style.BRIGHT), req.get("requester_id"))
    if req.get("description"):
        print(colorize("Description:", Style.BRIGHT), req["description"])

    print(colorize("\nApproval chain:", Style.BRIGHT))
    step = req.get("approval_step", 0)
    for i, role in enumerate(req.get("approval_chain", [])):
        if i < step:
            marker = colorize("✓", Fore.GREEN)
        elif i == step and status in ("PENDING", "IN_PROGRESS"):
            marker = colorize("→", Fore.YELLOW)
        else:
            marker = colorize("·", Style.DIM)
        print(f"  {marker} {role}")

    if req.get("rejection_reason"):
        print(colorize("\nRejected:", Fore.RED), req["rejection_reason"])

    print(colorize("\nHistory:", Style.BRIGHT))
    for h in req.get("history", []):
        reason = f" - {h['reason']}" if h.get("reason") else ""
        print(f"  {colorize(h.get('timestamp', ''), Style.DIM)} {h.get('action')} by {h.get('actor')}{reason}")

    print(colorize("\nDetails:", Style.BRIGHT))
    print(json.dumps(req.get("details", {}), indent=2, default=str))


async def _call(args, method: str, path: str, **kwargs) -> Any | None:
    """Call the service, printing the error body on failure."""
    url = f"{args.base_url}{path}"
    async with httpx.AsyncClient() as client:
        response = await client.request(method, url, **kwargs)

    if response.status_code >= 400:
        print(colorize(f"Error: {response.status_code}", Fore.RED), file=sys.stderr)
        print(response.text, file=sys.stderr)
        return None
    return response.json()


async def cmd_queue(args):
    """Show the work queue for a role."""
    params = {"role": args.role}
    if args.org:
        params["organization_id"] = args.org

    data = await _call(args, "GET", "/requests/queue", params=params)
    if data is None:
        return 1

    print(colorize(f"\nQueue for {args.role}:", Style.BRIGHT))
    for req in data.get("requests", []):
        print(f"  {format_request_line(req)}")
    if not data.get("requests"):
        print(colorize("  (empty)", Style.DIM))
    return 0


async def cmd_mine(args):
    """Show requests created by a user."""
    data = await _call(args, "GET", "/requests/mine", params={"email": args.email})
    if data is None:
        return 1

    print(colorize(f"\nRequests by {args.email}:", Style.BRIGHT))
    for req in data.get("requests", []):
        print(f"  {format_request_line(req)}")
    if not data.get("requests"):
        print(colorize("  (none)", Style.DIM))
    return 0


async def cmd_show(args):
    data = await _call(args, "GET", f"/requests/{args.request_id}")
    if data is None:
        return 1
    print_request(data)
    return 0


async def cmd_approve(args):
    body: dict[str, Any] = {"actor": args.actor}
    if args.step is not None:
        body["expected_step"] = args.step

    data = await _call(args, "POST", f"/requests/{args.request_id}/approve", json=body)
    if data is None:
        return 1
    print(colorize("Approved.", Fore.GREEN), format_request_line(data))
    return 0


async def cmd_reject(args):
    body: dict[str, Any] = {"actor": args.actor, "reason": args.reason}
    if args.step is not None:
        body["expected_step"] = args.step

    data = await _call(args, "POST", f"/requests/{args.request_id}/reject", json=body)
    if data is None:
        return 1
    print(colorize("Rejected.", Fore.RED), format_request_line(data))
    return 0


async def cmd_cancel(args):
    data = await _call(args, "POST", f"/requests/{args.request_id}/cancel", json={"actor": args.actor})
    if data is None:
        return 1
    print(colorize("Cancelled.", Style.DIM), format_request_line(data))
    return 0


COMMANDS = {
    "queue": cmd_queue,
    "mine": cmd_mine,
    "show": cmd_show,
    "approve": cmd_approve,
    "reject": cmd_reject,
    "cancel": cmd_cancel,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="CLI tool for the Lost & Found Work Request Service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--base-url",
        default="http://localhost:8060",
        help="Base URL of the work request service",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # queue command
    queue_parser = subparsers.add_parser("queue", help="Show the work queue for a role")
    queue_parser.add_argument("role", help="Role name (e.g., CAMPUS_COORDINATOR)")
    queue_parser.add_argument("--org", help="Limit to one organization")

    # mine command
    mine_parser = subparsers.add_parser("mine", help="Show requests created by a user")
    mine_parser.add_argument("email", help="Requester email")

    # show command
    show_parser = subparsers.add_parser("show", help="Show one request")
    show_parser.add_argument("request_id")

    # approve command
    approve_parser = subparsers.add_parser("approve", help="Approve the current step")
    approve_parser.add_argument("request_id")
    approve_parser.add_argument("actor", help="Approver email")
    approve_parser.add_argument("--step", type=int, help="Fail if the request is no longer at this step")

    # reject command
    reject_parser = subparsers.add_parser("reject", help="Reject a request")
    reject_parser.add_argument("request_id")
    reject_parser.add_argument("actor", help="Approver email")
    reject_parser.add_argument("reason", help="Why the request is rejected")
    reject_parser.add_argument("--step", type=int, help="Fail if the request is no longer at this step")

    # cancel command
    cancel_parser = subparsers.add_parser("cancel", help="Cancel your own request")
    cancel_parser.add_argument("request_id")
    cancel_parser.add_argument("actor", help="Requester email")

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    return asyncio.run(COMMANDS[args.command](args))


if __name__ == "__main__":
    sys.exit(main() or 0)
