#!/usr/bin/env python3
"""
TicketOps CLI - Main Entry Point

Usage:
    ticketops login                     # Sign in and store the token
    ticketops logout                    # Forget the token and cached data
    ticketops status                    # Show who is logged in
    ticketops tickets --status Open     # List tickets
    ticketops ticket <id>               # Show one ticket with its activity
    ticketops stats                     # Dashboard figures
    ticketops inventory                 # Spare stock per site
    ticketops notifications --unread    # Notification inbox
"""

import argparse
import asyncio
import sys

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from ticketops_cli import __version__
from ticketops_cli.auth import CredentialStore, interactive_login, login, show_status
from ticketops_cli.client import TicketOpsClient, APIError
from ticketops_cli.config import CLIConfig


PRIORITY_STYLES = {"P1": "bold red", "P2": "red", "P3": "yellow", "P4": "green"}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticketops",
        description="TicketOps - surveillance helpdesk from the terminal",
    )
    parser.add_argument("--server-url", type=str, help="Backend API URL (default: from config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show tracebacks on errors")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    login_parser = subparsers.add_parser("login", help="Login to TicketOps")
    login_parser.add_argument("--username", "-u", help="Username or e-mail")
    login_parser.add_argument("--password", "-p", help="Password (prompted when omitted)")

    subparsers.add_parser("logout", help="Logout and clear cached data")
    subparsers.add_parser("status", help="Show authentication status")

    tickets_parser = subparsers.add_parser("tickets", help="List tickets")
    tickets_parser.add_argument("--status", help="Comma-separated statuses, e.g. Open,Assigned")
    tickets_parser.add_argument("--priority", help="P1..P4")
    tickets_parser.add_argument("--site", dest="site_id", help="Site id")
    tickets_parser.add_argument("--search", help="Ticket number, title or description")
    tickets_parser.add_argument("--page", type=int, default=1)

    ticket_parser = subparsers.add_parser("ticket", help="Show a ticket")
    ticket_parser.add_argument("ticket_id")

    subparsers.add_parser("stats", help="Dashboard statistics")

    inventory_parser = subparsers.add_parser("inventory", help="Spare stock per site")
    inventory_parser.add_argument("--site", dest="site_id", help="Site id")

    notifications_parser = subparsers.add_parser("notifications", help="Show notifications")
    notifications_parser.add_argument("--unread", action="store_true", help="Only unread")

    return parser


def render_tickets(console: Console, page: dict) -> None:
    table = Table(title=f"Tickets (page {page['page']} of {page['total_pages']}, {page['total']} total)")
    table.add_column("Number", style="cyan")
    table.add_column("Priority")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Assignee")
    table.add_column("SLA")
    for ticket in page["items"]:
        priority = ticket["priority"]
        assignee = (ticket.get("assignee") or {}).get("full_name", "-")
        sla = "[red]breached[/red]" if ticket.get("is_sla_restore_breached") else "ok"
        table.add_row(
            ticket["ticket_number"],
            f"[{PRIORITY_STYLES.get(priority, 'white')}]{priority}[/]",
            ticket["status"],
            ticket["title"],
            assignee,
            sla,
        )
    console.print(table)


def render_ticket(console: Console, ticket: dict, activities: list) -> None:
    lines = [
        f"[bold]{ticket['title']}[/bold]",
        "",
        f"[bold]Status:[/bold] {ticket['status']}   [bold]Priority:[/bold] {ticket['priority']}",
        f"[bold]Category:[/bold] {ticket['category']}",
        f"[bold]Assignee:[/bold] {(ticket.get('assignee') or {}).get('full_name', 'Unassigned')}",
        f"[bold]Restore due:[/bold] {ticket.get('sla_restore_due') or '-'}",
    ]
    if ticket.get("description"):
        lines += ["", ticket["description"]]
    console.print(Panel("\n".join(lines), title=ticket["ticket_number"], border_style="cyan"))

    table = Table(title="Activity")
    table.add_column("When", style="dim")
    table.add_column("Type")
    table.add_column("Note")
    for activity in activities:
        table.add_row(activity["created_at"][:16].replace("T", " "), activity["activity_type"], activity["content"])
    console.print(table)


def render_stats(console: Console, stats: dict) -> None:
    table = Table(title="Dashboard", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key, value in stats.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}: {v}" for k, v in value.items()) or "-"
        table.add_row(key.replace("_", " ").capitalize(), str(value))
    console.print(table)


def render_inventory(console: Console, groups: list) -> None:
    table = Table(title="Spare inventory")
    table.add_column("Site")
    table.add_column("Asset type")
    table.add_column("Count", justify="right")
    for group in groups:
        table.add_row(group.get("site_name") or "-", group["asset_type"], str(group["count"]))
    console.print(table)


def render_notifications(console: Console, listing: dict) -> None:
    table = Table(title=f"Notifications ({listing['unread_count']} unread)")
    table.add_column("", width=1)
    table.add_column("When", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Message")
    for item in listing["items"]:
        marker = "[cyan]*[/cyan]" if not item["is_read"] else ""
        table.add_row(marker, item["created_at"][:16].replace("T", " "), item["title"], item["message"])
    console.print(table)


async def run_command(args, client: TicketOpsClient, store: CredentialStore, console: Console,
                      page_size: int = 20) -> int:
    if args.command == "login":
        if args.username:
            password = args.password
            if password is None:
                password = Prompt.ask("Password", password=True)
            user = await login(client, store, args.username, password)
            console.print(f"\n[green]✓ Login successful![/green] Welcome, [bold]{user.get('full_name')}[/bold]")
            return 0
        return 0 if await interactive_login(client, store, console) else 1

    if args.command == "logout":
        client.logout()
        store.clear()
        console.print("[green]Logged out successfully[/green]")
        return 0

    if args.command == "status":
        show_status(store, console)
        return 0

    if not store.is_authenticated():
        console.print("\n[red]✗ Authentication required[/red]")
        console.print("Please login first: [cyan]ticketops login[/cyan]")
        return 1

    if args.command == "tickets":
        page = await client.list_tickets(
            status=args.status, priority=args.priority, site_id=args.site_id,
            search=args.search, page=args.page, page_size=page_size,
        )
        render_tickets(console, page)
    elif args.command == "ticket":
        ticket = await client.get_ticket(args.ticket_id)
        render_ticket(console, ticket, await client.ticket_activities(args.ticket_id))
    elif args.command == "stats":
        render_stats(console, await client.dashboard_stats())
    elif args.command == "inventory":
        render_inventory(console, await client.inventory(args.site_id))
    elif args.command == "notifications":
        render_notifications(console, await client.notifications(unread_only=args.unread))
    return 0


async def _run(args, config: CLIConfig, console: Console) -> int:
    store = CredentialStore(config.credentials_file, console)
    async with TicketOpsClient(
        base_url=args.server_url or config.api_base_url,
        token=store.token,
        use_cache=config.cache_enabled,
        timeout=config.timeout,
    ) as client:
        return await run_command(args, client, store, console, page_size=config.page_size)


def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(0)

    console = Console()
    config = CLIConfig.load_default()

    try:
        sys.exit(asyncio.run(_run(args, config, console)))
    except KeyboardInterrupt:
        console.print("\nCancelled")
        sys.exit(130)
    except APIError as e:
        if e.status_code == 401:
            console.print("[yellow]Session expired. Please login again.[/yellow]")
        else:
            console.print(f"[red]✗ {e.detail}[/red]")
        sys.exit(1)
    except httpx.ConnectError:
        console.print("[red]Cannot connect to server. Is the backend running?[/red]")
        sys.exit(1)
    except Exception as e:
        if args.verbose or config.verbose:
            console.print_exception()
        else:
            console.print(f"[red]✗ Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
