"""
interfaces/cli.py — agentloop CLI Interface

Interactive REPL over the agent stack. Uses rich for terminal rendering
and aioconsole for async input.

Routing:
  - `plan:<request>`   Planning Orchestrator (general agent when planning
                       is disabled)
  - anything else      general tool-calling agent, or, with
                       agent.auto_route, whatever the classifier picks
  - `exit` / `quit`    leave (EOF / Ctrl+D too)

Ctrl+C while a request runs cancels that request only; the REPL keeps
going. The general agent keeps its memory across turns and is reset
(state and step counter) after each one.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

import aioconsole
from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel

from agentloop.agent.chat import InputType
from agentloop.agent.context import RunContext
from agentloop.agent.factory import AgentStack, build_agent_stack
from agentloop.brain import LLMClientFactory
from agentloop.brain.llm_client import LLMError
from agentloop.config.settings import Settings
from agentloop.exceptions import AgentCancelledError, AgentLoopError, PlanExecutionError
from agentloop.observability.logger import clear_run, get_logger

log = get_logger(__name__)

PLAN_PREFIX = "plan:"
_PROMPT = "\033[36magentloop\033[0m> "


class CLIInterface:

    def __init__(self, settings: Settings, stack: Optional[AgentStack] = None, console: Optional[Console] = None):
        self.settings = settings
        self.console = console or Console()
        self._stack = stack
        self._ctx: Optional[RunContext] = None

    @property
    def stack(self) -> AgentStack:
        if self._stack is None:
            raise RuntimeError("CLI not initialised")
        return self._stack

    # ── Startup ───────────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._stack is None:
            llm = LLMClientFactory.from_settings(self.settings)
            self._stack = build_agent_stack(self.settings, llm)
        self._print_banner()
        await self._repl_loop()

    def _print_banner(self) -> None:
        planning = "on" if self.stack.orchestrator is not None else "off"
        routing = "auto" if self.settings.agent.auto_route else "task"
        self.console.print(
            Panel(
                f"[bold]{self.stack.general.name}[/]  ·  "
                f"LLM: [cyan]{self.settings.llm.provider}[/]/[cyan]{self.settings.llm.model}[/]  ·  "
                f"Tools: [dim]{', '.join(self.stack.registry.names())}[/]\n"
                f"Planning: {planning}  ·  Routing: {routing}\n\n"
                f"Type a request, or [bold]{PLAN_PREFIX}[/]<request> to plan it first. "
                f"[bold]exit[/] or Ctrl+D to quit.",
                border_style="cyan",
                padding=(0, 2),
            )
        )

    # ── REPL Loop ─────────────────────────────────────────────────────────────

    async def _repl_loop(self) -> None:
        while True:
            try:
                user_input = await aioconsole.ainput(_PROMPT)
            except (EOFError, KeyboardInterrupt):
                self.console.print("\n[dim]Goodbye.[/]")
                break

            user_input = user_input.strip()
            if not user_input:
                continue
            if user_input.lower() in ("exit", "quit"):
                self.console.print("[dim]Goodbye.[/]")
                break

            await self.handle(user_input)

    async def handle(self, user_input: str) -> Optional[str]:
        """Route one line of input, run it and render the outcome."""
        ctx = RunContext()
        self._ctx = ctx
        clear_run()
        self._install_interrupt(ctx)
        try:
            with self.console.status("[dim cyan]Thinking...[/]", spinner="dots"):
                result = await self.dispatch(user_input, ctx)
        except AgentCancelledError as e:
            self.console.print("[yellow]🛑 已取消[/]")
            if e.partial_result:
                self._render(e.partial_result, title="部分结果", style="yellow")
            return None
        except PlanExecutionError as e:
            log.error("cli.plan_failed", error=str(e))
            self.console.print(f"[red]❌ {escape(str(e))}[/]")
            if e.partial_result:
                self._render(e.partial_result, title="部分结果", style="yellow")
            return None
        except (AgentLoopError, LLMError) as e:
            log.error("cli.request_failed", error=str(e), error_type=type(e).__name__)
            self.console.print(f"[red]❌ {type(e).__name__}: {escape(str(e))}[/]")
            return None
        finally:
            self._remove_interrupt()
            self._reset_general()
            self._ctx = None

        self._render(result)
        return result

    async def dispatch(self, user_input: str, ctx: RunContext) -> str:
        if user_input.lower().startswith(PLAN_PREFIX):
            return await self._run_plan(user_input[len(PLAN_PREFIX):].strip(), ctx)

        if self.settings.agent.auto_route:
            kind = await self.stack.classifier.classify(user_input, ctx.child())
            log.info("cli.routed", kind=kind.value)
            if kind == InputType.CHAT:
                return await self.stack.chat.run(user_input, ctx)
            if kind == InputType.PLAN:
                return await self._run_plan(user_input, ctx)

        return await self.stack.general.run(user_input, ctx)

    async def _run_plan(self, request: str, ctx: RunContext) -> str:
        if self.stack.orchestrator is None:
            self.console.print("[yellow]规划功能未启用，使用通用代理执行。[/]")
            return await self.stack.general.run(request, ctx)
        return await self.stack.orchestrator.run(request, ctx)

    def _reset_general(self) -> None:
        # keeps memory; only state and step counter go back to zero
        self.stack.general.reset()

    # ── Ctrl+C ────────────────────────────────────────────────────────────────

    def _install_interrupt(self, ctx: RunContext) -> None:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, ctx.cancel, "用户中断")
        except (NotImplementedError, RuntimeError) as e:
            log.debug("cli.sigint_unavailable", error=str(e))

    def _remove_interrupt(self) -> None:
        try:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError) as e:
            log.debug("cli.sigint_unavailable", error=str(e))

    # ── Rendering ─────────────────────────────────────────────────────────────

    def _render(self, text: str, title: str = "结果", style: str = "green") -> None:
        if not text or not text.strip():
            self.console.print("[dim](空响应)[/]")
            return
        self.console.print(Panel(Markdown(text), title=title, border_style=style, padding=(0, 1)))


async def run_cli(settings: Settings, log) -> None:
    """
    Entry point called from main.py.

    Args:
        settings:  Loaded agentloop settings.
        log:       Application-level logger.
    """
    cli = CLIInterface(settings=settings)

    log.info("cli.starting")
    try:
        await cli.start()
    except KeyboardInterrupt:
        log.info("cli.interrupted")
    finally:
        log.info("cli.stopped")
