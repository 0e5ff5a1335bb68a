"""CLI - Command line interface for the claims investigation agents."""

import argparse
import asyncio
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory

from .client import ChatClient
from .config import PRIMARY_ROLE, ROLES, load_config
from .config_validator import Severity, has_errors, validate_config
from .events import AgentActive, Delegation, Error, Thinking, ToolCall
from .observability import setup_logging


console = Console()


def print_banner():
    """Print welcome banner."""
    banner = """
╔═══════════════════════════════════════════════════════════╗
║               Claims Fraud Investigation                  ║
║      Detection Agent + Investigation Agent (delegate)     ║
╠═══════════════════════════════════════════════════════════╣
║  Commands:                                                ║
║    /help     - Show this help message                     ║
║    /reset    - Reset conversation                         ║
║    /agents   - Show agent status                          ║
║    /quit     - Exit                                       ║
╚═══════════════════════════════════════════════════════════╝
"""
    console.print(banner, style="cyan")


def print_help():
    """Print help message."""
    help_text = """
## Available Commands

| Command | Description |
|---------|-------------|
| `/help` | Show this help message |
| `/reset` | Reset conversation history |
| `/agents` | Show agent status |
| `/quit` or `/exit` | Exit |

## Example Prompts

- "Find anomalies in recent claims"
- "Detect fraud rings sharing beneficiaries"
- "Check for claims billed after beneficiary death"
- "Investigate provider PRV52019 and explain their risk score"
"""
    console.print(Markdown(help_text))


def render_event(event):
    """Print one progress event as it streams in."""
    if isinstance(event, AgentActive):
        if event.status == "working":
            console.print(f"  ▶ {event.agent} ({event.vendor}) working", style="dim")
    elif isinstance(event, ToolCall):
        if event.phase == "start":
            console.print(f"  🔧 [{event.agent}] {event.tool}", style="dim")
        else:
            mark = "✓" if event.success else "✗"
            style = "green" if event.success else "red"
            console.print(f"  {mark} [{event.agent}] {event.tool} ({event.duration or 0}ms)", style=style)
    elif isinstance(event, Delegation):
        console.print(f"  ⇄ delegating {event.from_agent} → {event.to_agent}", style="magenta")
    elif isinstance(event, Thinking):
        console.print(Panel(event.text, title=f"💭 {event.agent}", border_style="dim"))
    elif isinstance(event, Error):
        console.print(f"  ❌ {event.message}", style="red")


def print_agents(client: ChatClient):
    table = Table(title="Agents")
    table.add_column("Agent")
    table.add_column("Vendor")
    table.add_column("Status")
    for agent in client.state.agents.values():
        table.add_row(agent.name, agent.vendor, agent.status)
    console.print(table)


async def ask(client: ChatClient, question: str) -> bool:
    """Send one question and print the answer. Returns False on error."""
    console.print("\n🤔 Investigating...", style="dim")
    message = await client.send(question)
    if message is None:
        console.print("\n(no answer)", style="yellow")
        return False
    if message.error:
        console.print(f"\n❌ Error: {message.error}", style="red")
        return False
    console.print("\n🤖 Assistant:", style="bold green")
    console.print(Markdown(message.content))
    return True


async def handle_command(command: str, client: ChatClient) -> bool:
    """Handle special commands. Returns True if should continue, False to exit."""
    cmd = command.lower().strip()

    if cmd in ["/quit", "/exit", "/q"]:
        console.print("\n👋 Goodbye!", style="yellow")
        return False
    elif cmd == "/help":
        print_help()
    elif cmd == "/reset":
        client.reset()
        console.print("🔄 Conversation reset.", style="green")
    elif cmd == "/agents":
        print_agents(client)
    else:
        console.print(f"Unknown command: {command}. Type /help for available commands.", style="red")

    return True


async def run_interactive(client: ChatClient):
    """Run interactive chat loop."""
    history_file = Path.home() / ".claims_agents_history"
    session = PromptSession(history=FileHistory(str(history_file)))

    print_banner()

    while True:
        try:
            user_input = await session.prompt_async("\n📝 You: ")
            user_input = user_input.strip()
            if not user_input:
                continue

            if user_input.startswith("/"):
                if not await handle_command(user_input, client):
                    break
                continue

            try:
                await ask(client, user_input)
            except KeyboardInterrupt:
                await client.cancel()
                console.print("\n⚠️ Interrupted.", style="yellow")

        except KeyboardInterrupt:
            console.print("\n\n👋 Goodbye!", style="yellow")
            break
        except EOFError:
            console.print("\n👋 Goodbye!", style="yellow")
            break


async def _with_client(url: str, coro_factory):
    client = ChatClient(url, on_event=render_event)
    try:
        return await coro_factory(client)
    finally:
        await client.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claims-agents",
        description="Healthcare claims fraud investigation with two cooperating agents",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run an agent server")
    serve.add_argument("--role", choices=ROLES, default=PRIMARY_ROLE, help="Agent role to serve")
    serve.add_argument("--offline", action="store_true", help="Use in-process sample tools")

    sub.add_parser("serve-tools", help="Run the tool service")

    ask_parser = sub.add_parser("ask", help="Ask one question and exit")
    ask_parser.add_argument("question", help="Investigation request")
    ask_parser.add_argument("--url", default=None, help="Detection agent URL")

    chat = sub.add_parser("chat", help="Interactive chat with the detection agent")
    chat.add_argument("--url", default=None, help="Detection agent URL")

    validate = sub.add_parser("validate", help="Check configuration and exit")
    validate.add_argument("--role", choices=ROLES, default=None, help="Only check one role")
    return parser


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        console.print(f"⚠️ Config file not found: {args.config}", style="red")
        return 2

    if args.command == "validate":
        issues = validate_config(config, role=args.role)
        for issue in issues:
            style = "red" if issue.severity == Severity.ERROR else "yellow"
            console.print(f"{issue.severity.value.upper()}: {issue.field}: {issue.message}", style=style)
        if not issues:
            console.print(f"Configuration OK ({config.source or 'defaults'})", style="green")
        return 1 if has_errors(issues) else 0

    if args.command == "serve":
        from .web.app import serve as serve_agent

        serve_agent(config, args.role, offline=args.offline)
        return 0

    if args.command == "serve-tools":
        from .web.tool_app import serve_tools

        serve_tools(config)
        return 0

    url = args.url or config.primary.url
    if args.command == "ask":
        ok = asyncio.run(_with_client(url, lambda client: ask(client, args.question)))
        return 0 if ok else 1

    asyncio.run(_with_client(url, run_interactive))
    return 0


if __name__ == "__main__":
    sys.exit(main())
