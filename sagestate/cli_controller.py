"""Command interactivity logic lives here."""

import sys

from prompt_toolkit.completion import Completer, Completion

from sagestate.config import GlobalConfig
from sagestate.errors import ConfigIOError, ResolutionError, SageStateError, UsageError
from sagestate.globals import CONSOLE, log_exception
from sagestate.models import list_chat_models
from sagestate.settings import UPDATABLE_KEYS
from sagestate.ui import GlobalPanels, UIConstructor

ERROR_TITLES = {
    UsageError: "USAGE ERROR",
    ResolutionError: "NOT FOUND",
    ConfigIOError: "I/O ERROR",
}


def complete_bool(value: bool) -> list[str]:
    return [str(not value).lower()]


def complete_option_bool(value: bool | None) -> list[str]:
    if value is None:
        return ["true", "false"]
    if value:
        return ["false", "null"]
    return ["true", "null"]


def complete_option_number(value) -> list[str]:
    if value is None:
        return []
    return [str(value), "null"]


class SetCompleter(Completer):
    """Completes `.set` keys, then values based on the current state"""

    def __init__(self, config: GlobalConfig):
        self.config = config

    def values(self, key: str) -> list[str]:
        with self.config.read() as cfg:
            if key == "temperature":
                return complete_option_number(cfg.temperature)
            if key == "top_p":
                return complete_option_number(cfg.top_p)
            if key == "max_output_tokens":
                return complete_option_number(cfg.model.max_output_tokens)
            if key == "save_session":
                return complete_option_bool(cfg.resolver.save_session)
            if key in ("function_calling", "save"):
                return complete_bool(getattr(cfg.settings, key))
            if key == "model":
                return [m.id for m in list_chat_models(cfg.settings)]
        return []

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith(".set "):
            return
        parts = text[len(".set ") :].split(" ")
        if len(parts) == 1:
            candidates = list(UPDATABLE_KEYS) + ["model"]
        elif len(parts) == 2:
            candidates = self.values(parts[0])
        else:
            return
        word = parts[-1]
        for candidate in candidates:
            if candidate.startswith(word):
                yield Completion(candidate, start_position=-len(word))


class CLIController:
    """Handles and supports all command input"""

    def __init__(self, config: GlobalConfig, panel: GlobalPanels, ui: UIConstructor):
        self.config = config
        self.panel = panel
        self.ui = ui

        # Command dict
        self.commands = {
            ".h": self.spawn_help_chart,
            ".help": self.spawn_help_chart,
            ".info": self.panel.spawn_info_panel,
            ".model": self.set_model,
            ".set": self.set_value,
            ".session": self.start_session,
            ".sessions": self.list_sessions,
            ".save session": self.save_session,
            ".exit session": self.exit_session,
            ".clear messages": self.clear_messages,
            ".exit": self.quit,
            ".quit": self.quit,
        }
        self.with_args = (".model", ".set", ".session", ".save session")

    # <~~HELPERS~~>
    def parse(self, user_input: str) -> tuple[str, str]:
        """Splits input into (command, arguments). Longest command wins."""
        text = user_input.strip()
        lowered = text.lower()
        for cmd in sorted(self.commands, key=len, reverse=True):
            if lowered == cmd or lowered.startswith(cmd + " "):
                return cmd, text[len(cmd) :].strip()
        return "", text

    def handle_input(self, user_input: str) -> bool:
        """Parse user input for a command & handle it"""
        cmd, args = self.parse(user_input)
        if not cmd:
            return False  # No command detected
        if args and cmd not in self.with_args:
            self.panel.spawn_error_panel("USAGE ERROR", f"{cmd} takes no arguments.")
            return True
        try:
            if cmd in self.with_args:
                self.commands[cmd](args)
            else:
                self.commands[cmd]()
        except SageStateError as e:
            self.panel.spawn_error_panel(ERROR_TITLES.get(type(e), "ERROR"), f"{e}")
        except Exception as e:
            log_exception(e, f"Error in handle_input() - command: {cmd}")
            self.panel.spawn_error_panel("UNEXPECTED ERROR", f"{e}")
        return True

    # <~~CHARTS~~>
    def spawn_help_chart(self):
        """Markdown usage chart."""
        CONSOLE.print(self.ui.help_chart_constructor())
        CONSOLE.print()

    # <~~CONFIG~~>
    def set_model(self, model_id: str):
        if not model_id:
            raise UsageError("Usage: .model <id>")
        with self.config.write() as cfg:
            cfg.set_model(model_id)
            model = cfg.model.id
        CONSOLE.print(f"[green]Model set to:[/green] {model}\n")

    def set_value(self, data: str):
        with self.config.write() as cfg:
            cfg.update(data)
        CONSOLE.print(f"[green]Updated:[/green] {data}\n")

    # <~~SESSION MANAGEMENT~~>
    def start_session(self, name: str):
        with self.config.write() as cfg:
            cfg.use_session(name or None)
            session_name = cfg.session.name
        CONSOLE.print(f"[green]Session started:[/green] {session_name}")
        self.panel.spawn_status_panel()

    def save_session(self, name: str):
        with self.config.write() as cfg:
            cfg.save_session(name)
            path = cfg.session.path
        CONSOLE.print(f"[green]Session saved in:[/green] {path}\n")

    def exit_session(self):
        with self.config.write() as cfg:
            name = cfg.session.name if cfg.session else ""
            cfg.exit_session()
        CONSOLE.print(f"[green]Left session:[/green] {name}\n")

    def clear_messages(self):
        with self.config.write() as cfg:
            cfg.clear_session_messages()
        CONSOLE.print("[green]Session messages cleared.[/green]")
        self.panel.spawn_status_panel()

    def list_sessions(self):
        """Fetches the session list and displays it."""
        with self.config.read() as cfg:
            sessions = cfg.list_sessions()

        if not sessions:
            CONSOLE.print("[dim]No saved sessions found.[/dim]\n")
            return

        CONSOLE.print("[cyan]Available sessions:[/cyan]")
        for s in sessions:
            CONSOLE.print(f"• {s}", highlight=False)
        CONSOLE.print()

    def quit(self):
        """
        Leaves the active session, saving it when due, then exits.
        A failed save returns to the prompt with the session still active.
        """
        with self.config.read() as cfg:
            in_session = cfg.session is not None
        if in_session:
            try:
                self.exit_session()
            except SageStateError as e:
                log_exception(e, "Error in quit()")
                self.panel.spawn_error_panel("ERROR SAVING", f"{e}")
                with self.config.read() as cfg:
                    if cfg.session is not None:
                        return
        CONSOLE.print("[yellow]✨ Farewell![/yellow]\n")
        sys.exit(0)
