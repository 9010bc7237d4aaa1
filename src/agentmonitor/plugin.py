"""Host-facing plugin: turns host hook callbacks into monitor events.

The host runtime calls four hooks:

- tool.execute.before(tool, session_id, call_id, args); raising vetoes the tool
- tool.execute.after(tool, session_id, call_id, output)
- chat.message(role, parts, session_id); raising drops the prompt
- event(raw); session created/updated/idle/error/deleted notices

MonitorPlugin keeps session state in a SessionStore, derives SessionStart,
Stop, SubagentStop and SessionEnd from it, sends everything through an
EventDispatcher and applies the monitor's control responses.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Iterable, Mapping
from typing import Any, Literal

import httpx
from pydantic import BaseModel, ValidationError

from agentmonitor.config import Config, load_config
from agentmonitor.dispatch import EventDispatcher, MonitorClient, policies_from_config
from agentmonitor.errors import BlockedByMonitorError, MonitorUnavailableError
from agentmonitor.events import (
    EventBuilder,
    HookEvent,
    HostSessionCreated,
    HostSessionDeleted,
    HostSessionError,
    HostSessionIdle,
    HostSessionUpdated,
    parse_host_event,
)
from agentmonitor.interaction import InteractionTracker, NotificationType, Severity
from agentmonitor.logging import get_logger, setup_logging
from agentmonitor.session import SessionSource, SessionState, SessionStore, now_ms
from agentmonitor.tools import ToolRegistry

log = get_logger("plugin")

HookCallable = Callable[..., Coroutine[Any, Any, Any]]


class MonitorPlugin:
    """Bridges host hooks to the monitor.

    Example:
        plugin = MonitorPlugin.from_directory("/path/to/project", project="demo")
        plugin.start()
        hooks = plugin.hooks()
        await hooks["tool.execute.before"]("Bash", "s1", "c1", {"command": "ls"})
        ...
        await plugin.close()
    """

    def __init__(
        self,
        config: Config,
        *,
        directory: str,
        project: str = "unknown",
        worktree: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the plugin.

        Args:
            config: Static configuration, read once at startup
            directory: Project directory of the host (reported as cwd)
            project: Project name for the _meta envelope
            worktree: Worktree path for the _meta envelope (default: directory)
            transport: Optional httpx transport for the monitor client
        """
        self._config = config
        self._directory = directory

        session_cfg = config.session
        transcript_dir = session_cfg.transcript_dir or f"{directory}/.opencode/transcripts"

        self.registry = ToolRegistry(config.tools.sensitive)
        self.store = SessionStore(
            directory,
            transcript_dir,
            idle_timeout=session_cfg.idle_timeout,
            end_grace_period=session_cfg.end_grace_period,
            on_idle=self._on_session_idle,
        )
        self.builder = EventBuilder(self.store, self.registry)
        self.tracker = InteractionTracker(
            max_history=config.notifications.max_history,
            dismiss_delay=config.notifications.dismiss_delay,
        )

        policies, default_policy = policies_from_config(config.gating)
        self.dispatcher = EventDispatcher(
            MonitorClient(config.monitor.endpoint, timeout=config.monitor.timeout, transport=transport),
            project=project,
            directory=directory,
            worktree=worktree if worktree is not None else directory,
            policies=policies,
            default_policy=default_policy,
        )

        self._background: set[asyncio.Task[Any]] = set()
        self._stop_checks: dict[str, asyncio.Task[None]] = {}
        self._sweep_task: asyncio.Task[None] | None = None
        self._idle_warned: dict[str, float] = {}

        log.info("Agent monitor plugin loaded, sending to %s", config.monitor.endpoint)

    @classmethod
    def from_directory(cls, directory: str, **kwargs: Any) -> MonitorPlugin:
        """Load configuration for a project directory, set up logging and build the plugin."""
        config = load_config(directory=directory)
        setup_logging(config.logging)
        return cls(config, directory=directory, **kwargs)

    @property
    def config(self) -> Config:
        return self._config

    def hooks(self) -> dict[str, HookCallable]:
        """Hook name to coroutine mapping in the host's naming."""
        return {
            "tool.execute.before": self.tool_execute_before,
            "tool.execute.after": self.tool_execute_after,
            "chat.message": self.chat_message,
            "event": self.handle_event,
        }

    # --- Lifecycle ---

    def start(self) -> None:
        """Arm the idle-warning sweep. Must be called from a running loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._idle_sweep_loop())

    async def close(self) -> None:
        """Cancel timers and background sends, then close the HTTP client."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._background.clear()
        self._stop_checks.clear()

        self.store.dispose()
        self.tracker.dispose()
        await self.dispatcher.aclose()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _send(self, event: HookEvent) -> None:
        await self.dispatcher.send(event)

    async def _ensure_session(self, session_id: str) -> SessionState:
        """Get a live session, creating or reviving it and announcing SessionStart."""
        session = self.store.get_session(session_id)
        if session is not None and not session.is_ended:
            return session

        source = SessionSource.RESUME if session is not None else SessionSource.STARTUP
        session = self.store.init_session(session_id, source)
        await self._send(self.builder.session_start(session_id))
        return session

    async def _notify(
        self,
        session_id: str,
        type: NotificationType,
        message: str,
        severity: Severity,
        *,
        event_message: str | None = None,
    ) -> None:
        """Record a notification and forward it when the session is known."""
        self.tracker.create_notification(session_id, type, message, severity)
        if self.store.has_session(session_id):
            await self._send(self.builder.notification(session_id, event_message or message))

    # --- tool.execute.before ---

    async def tool_execute_before(
        self,
        tool: str,
        session_id: str,
        call_id: str | None,
        args: Mapping[str, Any] | None,
    ) -> None:
        """Gate a tool call through the monitor.

        Raises:
            BlockedByMonitorError: The monitor refused the call.
            MonitorUnavailableError: The monitor could not be reached and
                PreToolUse is configured fail-closed.
        """
        self._cancel_stop_check(session_id)
        await self._ensure_session(session_id)

        args = dict(args or {})
        self.store.start_tool(session_id, tool, args)
        log.debug("Tool %s starting (session=%s, call=%s)", tool, session_id, call_id)

        try:
            control = await self.dispatcher.gate(
                self.builder.pre_tool_use(session_id, tool, args)
            )
        except BlockedByMonitorError as e:
            # The call never ran
            self.store.abort_tool(session_id, tool)
            await self._notify(
                session_id,
                NotificationType.TOOL_BLOCKED,
                f"Tool {tool} blocked: {e.reason}",
                Severity.WARNING,
            )
            raise
        except MonitorUnavailableError:
            self.store.abort_tool(session_id, tool)
            self.tracker.create_notification(
                session_id,
                NotificationType.ERROR_OCCURRED,
                f"Tool {tool} refused: monitor unavailable",
                Severity.ERROR,
            )
            raise

        self.dispatcher.remember_control(session_id, control)
        self.store.set_responding(session_id, True)

    # --- tool.execute.after ---

    async def tool_execute_after(
        self,
        tool: str,
        session_id: str,
        call_id: str | None,
        output: Any,
    ) -> str | None:
        """Report a finished tool and derive SubagentStop/Stop.

        Returns the context injected into this tool's result, if the monitor
        queued any. A dict output also receives it under "context_injected".
        """
        if not self.store.has_session(session_id):
            log.warning("Session not found for post-execute: %s", session_id)
            return None

        context = self.dispatcher.take_context(session_id)
        if context is not None and isinstance(output, dict):
            output["context_injected"] = context

        control = await self.dispatcher.send_with_control(
            self.builder.post_tool_use(
                session_id, tool, output, context_injected=context is not None
            )
        )
        self.dispatcher.remember_control(session_id, control)

        self.store.complete_tool(session_id, tool)
        log.debug("Tool %s finished (session=%s, call=%s)", tool, session_id, call_id)

        subagent_stop = self.builder.take_subagent_stop(session_id)
        if subagent_stop is not None:
            await self._send(subagent_stop)

        self._schedule_stop_check(session_id)
        return context

    def _schedule_stop_check(self, session_id: str) -> None:
        self._cancel_stop_check(session_id)
        self._stop_checks[session_id] = self._spawn(self._delayed_stop_check(session_id))

    def _cancel_stop_check(self, session_id: str) -> None:
        task = self._stop_checks.pop(session_id, None)
        if task is not None:
            task.cancel()

    async def _delayed_stop_check(self, session_id: str) -> None:
        await asyncio.sleep(self._config.session.stop_check_delay)
        self._stop_checks.pop(session_id, None)
        if not self.store.has_session(session_id):
            return
        self.store.set_responding(session_id, False)
        stop = self.builder.take_stop(session_id)
        if stop is not None:
            await self._send(stop)

    # --- chat.message ---

    async def chat_message(
        self,
        role: str,
        parts: Iterable[Any] | str,
        session_id: str,
    ) -> str | None:
        """Submit a user prompt to the monitor.

        Returns the prompt to continue with (the monitor's rewrite when it
        sent one), or None for non-user messages.

        Raises:
            BlockedByMonitorError: The monitor refused the prompt.
        """
        if role != "user":
            return None

        prompt = _prompt_text(parts)
        self._cancel_stop_check(session_id)
        await self._ensure_session(session_id)
        self.store.handle_user_message(session_id)

        try:
            control = await self.dispatcher.send_with_control(
                self.builder.user_prompt_submit(session_id, prompt)
            )
        except MonitorUnavailableError as e:
            self.tracker.process_prompt(session_id, prompt)
            self.tracker.create_notification(
                session_id,
                NotificationType.ERROR_OCCURRED,
                f"Failed to process prompt: {e.cause}",
                Severity.ERROR,
            )
            raise

        metadata = self.tracker.process_prompt(session_id, prompt, control)

        if control.block:
            reason = control.reason or "Prompt was blocked by monitor"
            await self._notify(
                session_id,
                NotificationType.TOOL_BLOCKED,
                reason,
                Severity.WARNING,
                event_message=f"Prompt blocked: {reason}",
            )
            raise BlockedByMonitorError(reason, event_name="UserPromptSubmit")

        if control.modified_prompt:
            log.info("Prompt modified by monitor (session=%s)", session_id)
        self.dispatcher.remember_control(session_id, control)

        trigger = self.tracker.check_triggers(prompt)
        if trigger is not None:
            severity = (
                Severity.WARNING if trigger is NotificationType.PERMISSION_NEEDED else Severity.INFO
            )
            await self._notify(
                session_id,
                trigger,
                f"Prompt triggered {trigger.value} notification",
                severity,
            )

        return metadata.effective_prompt

    def take_system_message(self, session_id: str) -> str | None:
        """System message from the monitor for the host to surface, once."""
        return self.dispatcher.take_system_message(session_id)

    async def pre_compact(
        self,
        session_id: str,
        trigger: Literal["manual", "auto"] = "auto",
        custom_instructions: str | None = None,
    ) -> None:
        """Report an upcoming context compaction."""
        if not self.store.has_session(session_id):
            log.warning("Session not found for pre-compact: %s", session_id)
            return
        await self._send(self.builder.pre_compact(session_id, trigger, custom_instructions))

    # --- event ---

    async def handle_event(self, raw: Mapping[str, Any] | BaseModel) -> None:
        """Handle a host session lifecycle event.

        Unsupported or malformed events are ignored.
        """
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(by_alias=True)
        try:
            event = parse_host_event(dict(raw))
        except ValidationError:
            log.debug("Ignoring host event %r", raw.get("type"))
            return

        session_id = event.properties.session_id

        if not session_id:
            if isinstance(event, HostSessionError):
                log.warning("Session error without session id: %s", event.properties.error_name)
            else:
                log.debug("Host event %s without session id", event.type)
            return

        if isinstance(event, HostSessionError):
            await self._handle_session_error(session_id, event)
        elif isinstance(event, HostSessionCreated):
            await self._ensure_session(session_id)
        elif isinstance(event, HostSessionUpdated):
            self.store.update_activity(session_id)
        elif isinstance(event, HostSessionIdle):
            await self._finish_session(session_id, "idle")
        elif isinstance(event, HostSessionDeleted):
            await self._finish_session(session_id, "deleted")

    async def _handle_session_error(self, session_id: str, event: HostSessionError) -> None:
        error_name = event.properties.error_name
        if not self.store.has_session(session_id) or self.store.is_ended(session_id):
            log.warning("Error for inactive session %s: %s", session_id, error_name)
            return

        message = f"Session error: {error_name}"
        await self._notify(session_id, NotificationType.ERROR_OCCURRED, message, Severity.ERROR)
        self.store.end_session(session_id, f"error: {error_name}", event.properties.error)
        await self._report_session_end(session_id)

    async def _finish_session(self, session_id: str, reason: str) -> None:
        """End a session, report SessionEnd and a summary, drop side state."""
        session = self.store.get_session(session_id)
        if session is None or session.is_ended:
            return

        self.store.end_session(session_id, reason)
        await self._report_session_end(session_id)

    async def _report_session_end(self, session_id: str) -> None:
        self._cancel_stop_check(session_id)
        self._idle_warned.pop(session_id, None)
        if self.store.has_session(session_id):
            await self._send(self.builder.session_end(session_id))

        stats = self.tracker.get_session_stats(session_id)
        self.tracker.create_notification(
            session_id,
            NotificationType.SESSION_UPDATE,
            f"Session ended: {stats.total_prompts} prompts, {stats.blocked_prompts} blocked",
            Severity.INFO,
        )
        self.tracker.clear_session(session_id)
        self.dispatcher.clear_session(session_id)

    def _on_session_idle(self, session: SessionState) -> None:
        # Called from the store's idle timer, outside any hook
        self._spawn(self._report_session_end(session.session_id))

    # --- Idle warning sweep ---

    async def _idle_sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.session.sweep_interval)
            try:
                await self.sweep_idle_sessions()
            except Exception as e:
                log.error("Idle sweep failed: %s", e)

    async def sweep_idle_sessions(self) -> list[str]:
        """Warn sessions about to go idle. Returns the ids warned this pass."""
        idle_ms = self._config.session.idle_timeout * 1000
        window_ms = self._config.session.idle_warning_window * 1000
        now = now_ms()
        warned: list[str] = []

        for session in self.store.get_active_sessions():
            if session.is_ended:
                continue
            inactive = now - session.last_activity
            if not (idle_ms - window_ms < inactive < idle_ms):
                continue
            # One warning per stretch of inactivity
            if self._idle_warned.get(session.session_id) == session.last_activity:
                continue
            self._idle_warned[session.session_id] = session.last_activity

            remaining = (idle_ms - inactive) / 1000
            await self._notify(
                session.session_id,
                NotificationType.IDLE_WARNING,
                f"Session will become idle in {remaining:.0f} seconds",
                Severity.WARNING,
                event_message="Session idle warning",
            )
            warned.append(session.session_id)

        return warned


def _prompt_text(parts: Iterable[Any] | str) -> str:
    """Join the text of a message's parts."""
    if isinstance(parts, str):
        return parts
    texts = []
    for part in parts:
        if isinstance(part, Mapping):
            texts.append(str(part.get("text") or ""))
        else:
            texts.append(str(getattr(part, "text", "") or ""))
    return "\n".join(texts)
