"""
TicketOps CLI Authentication
============================

Token is stored in ~/.ticketops/credentials.json after ``ticketops login``.
There is no refresh token: when the token expires the user logs in again.
"""

import os
import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Dict, Any

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt

from ticketops_cli.client import TicketOpsClient, APIError


@dataclass
class UserCredentials:
    """Stored user credentials"""
    user_id: str
    username: str
    full_name: str
    role: str
    access_token: str
    email: str = ""


class CredentialStore:
    """Loads, saves and clears the credentials file"""

    def __init__(self, path: Path, console: Optional[Console] = None):
        self.path = Path(path)
        self.console = console or Console()
        self.credentials: Optional[UserCredentials] = None
        self._load()

    def _load(self) -> bool:
        if not self.path.exists():
            return False
        try:
            with open(self.path) as f:
                self.credentials = UserCredentials(**json.load(f))
            return True
        except (OSError, ValueError, TypeError) as e:
            self.console.print(f"[yellow]Warning: Could not load credentials: {e}[/yellow]")
            return False

    def save(self, credentials: UserCredentials) -> None:
        self.credentials = credentials
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(asdict(credentials), f, indent=2)
        try:
            os.chmod(self.path, 0o600)
        except OSError:
            pass

    def clear(self) -> None:
        self.credentials = None
        if self.path.exists():
            self.path.unlink()

    def is_authenticated(self) -> bool:
        return bool(self.credentials and self.credentials.access_token)

    @property
    def token(self) -> Optional[str]:
        return self.credentials.access_token if self.credentials else None


async def login(client: TicketOpsClient, store: CredentialStore, username: str, password: str) -> Dict[str, Any]:
    """Authenticate and persist the token; raises APIError on bad credentials"""
    data = await client.login(username, password)
    user = data.get("user", {})
    store.save(UserCredentials(
        user_id=str(user.get("id", "")),
        username=user.get("username", username),
        full_name=user.get("full_name", ""),
        role=user.get("role", ""),
        access_token=data["access_token"],
        email=user.get("email", ""),
    ))
    return user


async def interactive_login(client: TicketOpsClient, store: CredentialStore, console: Console) -> bool:
    console.print(Panel(
        "[bold cyan]TicketOps - Login[/bold cyan]\n\n"
        "Sign in with your username or e-mail address.",
        border_style="cyan"
    ))
    username = Prompt.ask("Username or e-mail")
    password = Prompt.ask("Password", password=True)
    try:
        await login(client, store, username, password)
    except APIError as e:
        console.print(f"[red]Login failed: {e.detail}[/red]")
        return False
    return True


def show_status(store: CredentialStore, console: Console) -> None:
    if store.is_authenticated():
        creds = store.credentials
        console.print(Panel(
            f"[green]Authenticated[/green]\n\n"
            f"[bold]User:[/bold] {creds.full_name} ({creds.username})\n"
            f"[bold]Role:[/bold] {creds.role}\n"
            f"[bold]Email:[/bold] {creds.email or 'Not set'}",
            title="Authentication Status",
            border_style="green"
        ))
    else:
        console.print(Panel(
            "[red]Not authenticated[/red]\n\n"
            "Please login using: [cyan]ticketops login[/cyan]",
            title="Authentication Status",
            border_style="red"
        ))
