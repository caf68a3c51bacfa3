"""Builds and spawns UI objects. UIConstructor and GlobalPanels live here."""

import textwrap

from rich import box
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from sagestate import __version__
from sagestate.globals import CONSOLE


class UIConstructor:
    """Constructs and returns various UI objects"""

    def __init__(self, config):
        # GlobalConfig handle, only ever read here
        self.config = config

    def status_panel_constructor(self) -> Panel:
        with self.config.read() as cfg:
            context = cfg.prompt_context()
        if "session" not in context:
            status_text = Text.assemble(
                ("Model: "), (context["model"], "cyan"), (" | No session")
            )
            return Panel(status_text, border_style="dim", style="dim", expand=False)

        percentage = float(context["consume_percent"])
        # Colorize context percentage based on context consumption
        context_color: str = "dim"
        if percentage >= 50 and percentage < 80:
            context_color = "yellow"
        elif percentage >= 80:
            context_color = "red"

        status_text = Text.assemble(
            ("Session: "),
            (context["session"], "cyan"),
            ("*" if context["dirty"] == "true" else ""),
            (" | Context: "),
            (f"{context['consume_tokens']} ({percentage}%)", context_color),
            (" | "),
            (f"Turn: {context['user_messages_len']}"),
        )
        return Panel(
            status_text,
            border_style="dim",
            style="dim",
            expand=False,
        )

    def intro_panel_constructor(self) -> Panel:
        with self.config.read() as cfg:
            model_id = cfg.model.id
            temperature = cfg.temperature
        intro_text = Text.assemble(
            ("Model: ", "bold sandy_brown"),
            (f"{model_id}"),
            ("\nTemperature: ", "bold sandy_brown"),
            (f"{temperature if temperature is not None else '-'}"),
        )
        return Panel(
            intro_text,
            title=Text(f"🔮 Sage State {__version__}", "bold medium_orchid"),
            title_align="left",
            border_style="medium_orchid",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def error_panel_constructor(self, error: str, exception: str) -> Panel:
        return Panel(
            exception,
            title=Text(f"❌ {error}", style="bold red"),
            title_align="left",
            border_style="red",
            expand=False,
        )

    def info_panel_constructor(self) -> Panel:
        with self.config.read() as cfg:
            in_session = cfg.session is not None
            info = cfg.info()
        if in_session:
            body = Syntax(info, "json", theme="monokai", word_wrap=True)
            title = Text("📜 Session", style="bold cyan")
        else:
            body = Text(info)
            title = Text("⚙️ Settings", style="bold cyan")
        return Panel(
            body,
            title=title,
            title_align="left",
            border_style="cyan",
            box=box.HORIZONTALS,
            padding=(0, 0),
        )

    def help_chart_constructor(self) -> Markdown:
        return Markdown(
            textwrap.dedent("""
            | **Configuration** | *Settings commands* |
            | --- | ----------- |
            | `.info` | Display the current settings, or the active session. |
            | `.model <id>` | Switch the model, e.g. `openai:gpt-4o`. |
            | `.set <key> <value>` | Set `temperature`, `top_p`, `max_output_tokens`, `save`, `save_session` or `function_calling`. Use `null` to unset. |

            | **Session Management** | *Session management commands* |
            | --- | ----------- |
            | `.session [name]` | Start a temporary session, or start/load a named one. |
            | `.save session [name]` | Save the active session, optionally under a new name. |
            | `.exit session` | Leave the active session. Unsaved changes are saved unless `save_session` is false. |
            | `.clear messages` | Clear the active session's history. |
            | `.sessions` | List all saved sessions. |
            | `.exit` or `.quit` | Exit. |
            """)
        )


class GlobalPanels:
    """Global panel spawner"""

    def __init__(self, ui: UIConstructor):
        self.ui: UIConstructor = ui

    def spawn_intro_panel(self):
        """Simple welcome panel, prints on application launch."""
        CONSOLE.print(self.ui.intro_panel_constructor())
        CONSOLE.print(Markdown("Type `.help` for a list of commands."))
        CONSOLE.print()

    def spawn_status_panel(self):
        CONSOLE.print(self.ui.status_panel_constructor())
        CONSOLE.print()

    def spawn_error_panel(self, error: str, exception: str):
        """Error panel template, used by the controller and main()"""
        CONSOLE.print(self.ui.error_panel_constructor(error, exception))
        CONSOLE.print()

    def spawn_info_panel(self):
        CONSOLE.print(self.ui.info_panel_constructor())
        CONSOLE.print()
