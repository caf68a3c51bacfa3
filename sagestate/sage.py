"""
Sage State - configuration and session shell for an LLM chat client.

Run `sagestate` and type `.help` for a list of commands.
"""

from prompt_toolkit.completion import merge_completers

from sagestate.cli_controller import CLIController, SetCompleter
from sagestate.config import Config, GlobalConfig
from sagestate.errors import SageStateError
from sagestate.globals import (
    COMMAND_COMPLETER,
    CONSOLE,
    init_logger,
    log_exception,
    root_prompt,
    setup_keyring_backend,
)
from sagestate.ui import GlobalPanels, UIConstructor


def main():
    init_logger()
    setup_keyring_backend()
    try:
        config = GlobalConfig(Config.init())
    except SageStateError as e:
        log_exception(e, "Error in main() - startup")
        CONSOLE.print(f"[bold red]❌ STARTUP ERROR:[/bold red] {e}\n")
        return

    ui = UIConstructor(config)
    panel = GlobalPanels(ui)
    controller = CLIController(config, panel, ui)
    completer = merge_completers([COMMAND_COMPLETER, SetCompleter(config)])

    panel.spawn_intro_panel()
    while True:
        try:
            user_input = root_prompt(completer)
        except (KeyboardInterrupt, EOFError):
            controller.quit()
            continue
        if not user_input.strip():
            continue
        if not controller.handle_input(user_input):
            CONSOLE.print(
                "[dim]Not a command. Type [cyan].help[/cyan] for a list of commands.[/dim]\n"
            )


if __name__ == "__main__":
    main()
