"""Menu-driven console session.

The console owns no state beyond the current ``SessionContext``, which is
passed explicitly to every gated call and dropped on logout.
"""

import logging
from typing import Callable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt
from rich.table import Table

from ..config import Settings, get_settings
from ..evaluation import OperationKind
from ..exceptions import AuthenticationError, RegistrationError, StoreError
from ..models.operation_history import OperationStatus
from ..observability.logging import clear_log_context, set_log_context
from ..security.credentials import is_valid_dpi
from ..security.permissions import Capability, PermissionChecker
from ..security.session import RoleInfo, SessionContext
from ..services.gateway import OperationGateway, OperationOutcome
from ..services.history import HistoryEntry, HistoryRecorder
from ..services.quota import QuotaTracker
from ..services.users import UserDirectory, UserSummary

logger = logging.getLogger(__name__)

# ask(prompt, password) -> answer
AskFn = Callable[[str, bool], str]

EXAMPLES = {
    OperationKind.MATH: "3 SUMA 4 MULTIPLICA 2",
    OperationKind.BOOLEAN: "true OR false AND true",
}


def rich_ask(console: Console) -> AskFn:
    def ask(prompt: str, password: bool = False) -> str:
        return Prompt.ask(prompt, console=console, password=password)
    return ask


class ConsoleApp:
    """Main menu, user menu and admin menu of the calculator."""

    def __init__(
        self,
        directory: UserDirectory,
        gateway: OperationGateway,
        history: HistoryRecorder,
        permissions: PermissionChecker,
        console: Optional[Console] = None,
        ask: Optional[AskFn] = None,
        settings: Optional[Settings] = None,
    ):
        self.directory = directory
        self.gateway = gateway
        self.history = history
        self.permissions = permissions
        self.console = console or Console()
        self._ask = ask or rich_ask(self.console)
        self.settings = settings or get_settings()

    @classmethod
    def build(cls, console: Optional[Console] = None, ask: Optional[AskFn] = None) -> "ConsoleApp":
        """Wire the app to the shared database engine."""
        permissions = PermissionChecker()
        history = HistoryRecorder()
        gateway = OperationGateway(permissions, QuotaTracker(), history)
        return cls(UserDirectory(), gateway, history, permissions, console=console, ask=ask)

    def ask(self, prompt: str, password: bool = False) -> str:
        return self._ask(prompt, password).strip()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self) -> int:
        """Run the interactive session. Returns the process exit code."""
        self.console.print(f"[bold]=== {escape(self.settings.app_name)} ===[/bold]")
        try:
            if not self.check_dpi():
                return 1
            await self.main_menu()
        except (EOFError, KeyboardInterrupt):
            self.console.print("\nGoodbye!")
        return 0

    def check_dpi(self) -> bool:
        """Ask for a well-formed DPI before anything else."""
        attempts = self.settings.dpi_max_attempts
        for attempt in range(1, attempts + 1):
            dpi = self.ask("Enter your DPI (13 digits)")
            if is_valid_dpi(dpi):
                self.console.print("[green]DPI accepted[/green]")
                return True
            self.console.print(
                f"[red]Invalid DPI. It must be exactly 13 digits. "
                f"Attempts left: {attempts - attempt}[/red]"
            )
        self.console.print("[red]Too many invalid attempts. Exiting.[/red]")
        return False

    # ------------------------------------------------------------------
    # Main menu
    # ------------------------------------------------------------------

    async def main_menu(self) -> None:
        while True:
            self.console.print("\n[bold]=== CALCULATOR ===[/bold]")
            self.console.print("1. Create user")
            self.console.print("2. Log in")
            self.console.print("3. Quit")
            choice = self.ask("Select an option (1-3)")

            if choice == "1":
                await self.create_user()
            elif choice == "2":
                session = await self.login()
                if session is not None:
                    await self.user_menu(session)
            elif choice == "3":
                self.console.print("Goodbye!")
                return
            else:
                self.console.print("[yellow]Invalid option[/yellow]")

    async def _choose_role(self, prompt: str) -> Optional[RoleInfo]:
        roles = await self.directory.list_roles()
        self.console.print("\nAvailable roles:")
        for index, role in enumerate(roles, start=1):
            self.console.print(
                f"{index}. {escape(role.name)} ({role.daily_limit} operations/day)"
            )
        choice = self.ask(f"{prompt} (1-{len(roles)})")
        if choice.isdigit() and 1 <= int(choice) <= len(roles):
            return roles[int(choice) - 1]
        self.console.print("[yellow]Invalid option[/yellow]")
        return None

    async def create_user(self) -> Optional[UserSummary]:
        self.console.print("Creating user...")
        dpi = self.ask("DPI (13 digits)")
        if not is_valid_dpi(dpi):
            self.console.print("[red]Error: invalid DPI[/red]")
            return None
        name = self.ask("Full name")
        email = self.ask("Email")
        password = self.ask("Password", password=True)

        try:
            role = await self._choose_role("Select the role")
            if role is None:
                return None
            user = await self.directory.register(dpi, name, email, password, role.name)
        except (RegistrationError, StoreError) as e:
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
            return None

        self.console.print(
            f"[green]User created:[/green] {escape(user.name)} <{escape(user.email)}> ({escape(user.role_name)})"
        )
        return user

    async def login(self) -> Optional[SessionContext]:
        self.console.print("Logging in...")
        dpi = self.ask("DPI")
        password = self.ask("Password", password=True)
        try:
            session = await self.directory.authenticate(dpi, password)
        except (AuthenticationError, StoreError) as e:
            self.console.print(f"[red]{escape(str(e))}[/red]")
            return None

        set_log_context(user_id=str(session.user_id), session_id=session.session_id)
        self.console.print(
            f"[green]Welcome {escape(session.name)}[/green] ({escape(session.role.name)})"
        )
        return session

    # ------------------------------------------------------------------
    # User menu
    # ------------------------------------------------------------------

    async def user_menu(self, session: SessionContext) -> None:
        can_view_all = session.role.grants(Capability.VIEW_ALL_HISTORY)
        can_manage = session.role.grants(Capability.MANAGE_USERS)
        try:
            while True:
                self.console.print(f"\n[bold]=== MENU: {escape(session.name)} ===[/bold]")
                self.console.print("1. Math operation")
                self.console.print("2. Boolean operation")
                self.console.print("3. My history")
                if can_view_all:
                    self.console.print("4. Everyone's history")
                if can_manage:
                    self.console.print("5. Manage users")
                self.console.print("0. Log out")
                choice = self.ask("Select an option")

                if choice == "1":
                    await self.run_operation(session, OperationKind.MATH)
                elif choice == "2":
                    await self.run_operation(session, OperationKind.BOOLEAN)
                elif choice == "3":
                    await self.show_own_history(session)
                elif choice == "4" and can_view_all:
                    await self.show_all_history(session)
                elif choice == "5" and can_manage:
                    await self.manage_users(session)
                elif choice == "0":
                    self.console.print("Logged out")
                    return
                else:
                    self.console.print("[yellow]Invalid option[/yellow]")
        finally:
            clear_log_context()

    async def run_operation(self, session: SessionContext, kind: OperationKind) -> OperationOutcome:
        label = "math operation" if kind == OperationKind.MATH else "boolean expression"
        expression = self.ask(f"Enter the {label} (e.g. '{EXAMPLES[kind]}')")
        outcome = await self.gateway.execute(session, kind, expression)
        self.show_outcome(outcome)
        return outcome

    def show_outcome(self, outcome: OperationOutcome) -> None:
        if outcome.succeeded:
            self.console.print(f"[green]Result:[/green] {escape(outcome.result)}")
            self.console.print(f"Operations left today: {outcome.remaining_quota}")
        else:
            self.console.print(f"[red]Error:[/red] {escape(outcome.error_message or '')}")

    async def _authorized(self, session: SessionContext, capability: Capability) -> bool:
        try:
            granted = await self.permissions.has_permission(session.role.id, capability)
        except StoreError as e:
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")
            return False
        if not granted:
            self.console.print("[red]You do not have permission for this action[/red]")
        return granted

    async def show_own_history(self, session: SessionContext) -> List[HistoryEntry]:
        if not await self._authorized(session, Capability.VIEW_OWN_HISTORY):
            return []
        limit = self.settings.history_page_size
        try:
            entries = await self.history.list_for_user(session.user_id, limit=limit)
        except StoreError as e:
            self.console.print(f"[red]Error loading history: {escape(str(e))}[/red]")
            return []
        if not entries:
            self.console.print("You have no operations in your history")
            return entries
        self.console.print(self._history_table(f"Your history (last {limit} operations)", entries))
        return entries

    async def show_all_history(self, session: SessionContext) -> List[HistoryEntry]:
        if not await self._authorized(session, Capability.VIEW_ALL_HISTORY):
            return []
        limit = self.settings.admin_history_page_size
        try:
            entries = await self.history.list_all(limit=limit)
        except StoreError as e:
            self.console.print(f"[red]Error loading history: {escape(str(e))}[/red]")
            return []
        if not entries:
            self.console.print("There are no operations in the history")
            return entries
        self.console.print(
            self._history_table(f"All history (last {limit} operations)", entries, with_user=True)
        )
        return entries

    @staticmethod
    def _history_table(title: str, entries: List[HistoryEntry], with_user: bool = False) -> Table:
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        if with_user:
            table.add_column("User")
        table.add_column("Kind")
        table.add_column("Expression")
        table.add_column("Result")
        table.add_column("Status")
        table.add_column("When")

        for index, entry in enumerate(entries, start=1):
            ok = entry.status == OperationStatus.SUCCESS
            row = [str(index)]
            if with_user:
                row.append(escape(entry.user_name or ""))
            row += [
                entry.kind.value,
                escape(entry.original_expression),
                escape(entry.result) if entry.result is not None else "ERROR",
                f"[green]{entry.status.value}[/green]" if ok else f"[red]{entry.status.value}[/red]",
                entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            ]
            table.add_row(*row)
        return table

    # ------------------------------------------------------------------
    # Admin menu
    # ------------------------------------------------------------------

    async def manage_users(self, session: SessionContext) -> None:
        if not await self._authorized(session, Capability.MANAGE_USERS):
            return
        self.console.print("\n[bold]=== USER MANAGEMENT ===[/bold]")
        self.console.print("1. List users")
        self.console.print("2. Activate/deactivate user")
        self.console.print("3. Change user role")
        self.console.print("0. Back")
        choice = self.ask("Select an option")

        try:
            if choice == "1":
                await self.list_users()
            elif choice == "2":
                await self.toggle_user()
            elif choice == "3":
                await self.change_user_role()
            elif choice != "0":
                self.console.print("[yellow]Invalid option[/yellow]")
        except (RegistrationError, StoreError) as e:
            self.console.print(f"[red]Error: {escape(str(e))}[/red]")

    async def list_users(self) -> List[UserSummary]:
        users = await self.directory.list_users()
        table = Table(title="Registered users", show_header=True, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("DPI")
        table.add_column("Email")
        table.add_column("Role")
        table.add_column("Status")
        for index, user in enumerate(users, start=1):
            table.add_row(
                str(index),
                escape(user.name),
                user.dpi,
                escape(user.email),
                escape(user.role_name),
                "[green]active[/green]" if user.is_active else "[red]inactive[/red]",
            )
        self.console.print(table)
        return users

    async def toggle_user(self) -> Optional[UserSummary]:
        dpi = self.ask("User DPI")
        user = await self.directory.toggle_active(dpi)
        if user is None:
            self.console.print("[red]User not found[/red]")
            return None
        state = "activated" if user.is_active else "deactivated"
        self.console.print(f"[green]User {escape(user.name)} {state}[/green]")
        return user

    async def change_user_role(self) -> Optional[UserSummary]:
        dpi = self.ask("User DPI")
        role = await self._choose_role("Select the new role")
        if role is None:
            return None
        user = await self.directory.change_role(dpi, role.name)
        if user is None:
            self.console.print("[red]User not found[/red]")
            return None
        self.console.print(f"[green]Role updated for {escape(user.name)}[/green]")
        return user
