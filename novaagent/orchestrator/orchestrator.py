"""
Nova Orchestrator - Agent loop with human approval

Two entry points:

``handle_message``
    Runs the model/tool loop for one user message. Read-only tools run
    immediately; tools that change the outside world are staged as pending
    actions in the ActionStore and the call returns ``requires_approval``.

``resume_after_approval``
    A later (possibly cross-process) call that approves or rejects pending
    actions by id. State comes from the ActionStore only; the conversation
    is never replayed.

Loop invariants:
- at most ``max_iterations`` completion calls per handle_message
- tool calls of one model turn are handled one at a time, in order
- an action runs at most once (guarded by the store's compare-and-swap)
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ..actions.models import Action, ActionStatus
from ..actions.store import ActionStore
from ..audit import AuditLogger
from ..constants import (
    AGENT_DISABLED_MESSAGE,
    DEFAULT_APPROVAL_PROMPT,
    DEFAULT_GREETING,
    PENDING_APPROVAL_PLACEHOLDER,
    TOOL_ERROR_PREFIX,
)
from ..errors import (
    ActionAlreadyProcessedError,
    ActionConflictError,
    ActionNotFoundError,
    ActionStoreError,
    AgentDisabledError,
    AgentError,
    CompletionError,
    ExternalServiceError,
    FeatureGateError,
    InvalidParamsError,
    IterationLimitExceeded,
    MalformedTranscriptError,
    UnknownToolError,
)
from ..protocols import CompletionClientProtocol, CredentialsProviderProtocol, FeatureGateProtocol
from ..result import ActionOutcome, AgentResult, ApprovalDecision, ExecutedAction, PendingAction
from ..tools.executor import ToolExecutor
from ..tools.models import ToolExecutionContext, ToolResult
from ..tools.registry import ToolRegistry
from .config import AgentLoopConfig
from .history import TranscriptItem, to_model_turns
from .messages import approval_summary, classify_completion_error, iteration_limit_content, tool_error_message
from .prompts import build_system_prompt
from .retry import complete_with_retry
from .session import AgentSession, AgentState

logger = logging.getLogger(__name__)


@dataclass
class _ParsedCall:
    id: str
    name: str
    arguments: Dict[str, Any]


class Orchestrator:
    """
    Usage:
        orchestrator = Orchestrator(
            llm_client=LiteLLMClient(LLMConfig(model="gpt-4o-mini")),
            registry=build_onboarding_registry(calendar, email, knowledge),
            action_store=InMemoryActionStore(),
        )
        result = await orchestrator.handle_message("u1", "c1", "Am I free on Friday?", history)
        if result.requires_approval:
            ids = [a.action_id for a in result.pending_actions]
            result = await orchestrator.resume_after_approval("u1", ids, "approve")
    """

    def __init__(
        self,
        llm_client: CompletionClientProtocol,
        registry: ToolRegistry,
        action_store: ActionStore,
        feature_gate: Optional[FeatureGateProtocol] = None,
        config: Optional[AgentLoopConfig] = None,
        executor: Optional[ToolExecutor] = None,
        credentials_provider: Optional[CredentialsProviderProtocol] = None,
        system_prompt: Optional[str] = None,
        audit: Optional[AuditLogger] = None,
    ):
        if llm_client is None:
            raise ValueError("llm_client is required")
        self.llm_client = llm_client
        self.registry = registry
        self.action_store = action_store
        self.feature_gate = feature_gate
        self.config = config or AgentLoopConfig()
        self.executor = executor or ToolExecutor(registry, timeout=self.config.tool_execution_timeout)
        self.credentials_provider = credentials_provider
        self._system_prompt = system_prompt
        self._audit = audit or AuditLogger()

    # ==========================================================================
    # handle_message
    # ==========================================================================

    async def handle_message(
        self,
        user_id: str,
        conversation_id: Optional[str],
        text: str,
        history: Optional[Iterable[TranscriptItem]] = None,
    ) -> AgentResult:
        """Run the agent loop for one user message."""
        session = AgentSession(user_id=user_id, conversation_id=conversation_id)

        try:
            enabled = await self._agent_enabled(user_id)
        except FeatureGateError as e:
            return self._fatal(session, e)

        if not enabled:
            logger.info(f"[Agent] Agent disabled for {user_id}, skipping tool loop")
            self._finish(session)
            disabled = AgentDisabledError(AGENT_DISABLED_MESSAGE)
            return AgentResult(
                content=AGENT_DISABLED_MESSAGE,
                agent_enabled=False,
                error={"code": disabled.code, "message": disabled.message},
            )

        try:
            turns = to_model_turns(history)
        except MalformedTranscriptError as e:
            return self._fatal(session, e)

        messages: List[Dict[str, Any]] = [{"role": "system", "content": self._build_system_prompt()}]
        messages.extend(turns)
        messages.append({"role": "user", "content": text})

        tool_schemas = self.registry.schemas()
        context = await self._build_context(user_id, conversation_id)

        logger.info(
            f"[Agent] user={user_id} conversation={conversation_id} "
            f"history={len(turns)} tools={len(tool_schemas)}"
        )

        while session.iteration_count < self.config.max_iterations:
            session.move_to(AgentState.THINKING)
            try:
                response = await complete_with_retry(
                    self.llm_client, messages, tool_schemas, self.config,
                )
            except CompletionError as e:
                return self._degraded(session, e)
            session.iteration_count += 1

            try:
                calls = self._parse_tool_calls(response, session.iteration_count)
            except InvalidParamsError as e:
                return self._fatal(session, e)

            self._audit.log_agent_turn(
                user_id=user_id,
                iteration=session.iteration_count,
                tool_calls=[c.name for c in calls],
                final_answer=not calls,
            )

            content = getattr(response, "content", "") or ""
            if not calls:
                session.move_to(AgentState.FINAL_ANSWER)
                logger.info(f"[Agent] iteration={session.iteration_count} final answer ({len(content)} chars)")
                self._finish(session)
                return AgentResult(
                    content=content or DEFAULT_GREETING,
                    executed_actions=session.executed_actions,
                    iterations=session.iteration_count,
                )

            session.move_to(AgentState.TOOLS_REQUESTED)
            if content:
                session.last_narrative = content
            logger.info(
                f"[Agent] iteration={session.iteration_count} calling: "
                f"{', '.join(c.name for c in calls)}"
            )

            # Nothing from this turn runs unless every call in it is well-formed
            try:
                for call in calls:
                    self.registry.validate(call.name, call.arguments)
            except (UnknownToolError, InvalidParamsError) as e:
                return self._fatal(session, e)

            messages.append(self._assistant_message(content, calls))
            for call in calls:
                if self.registry.is_auto_executable(call.name):
                    session.move_to(AgentState.AUTO_EXECUTING)
                    try:
                        messages.append(await self._run_auto(session, call, context))
                    except (UnknownToolError, InvalidParamsError) as e:
                        return self._fatal(session, e)
                else:
                    session.move_to(AgentState.AWAITING_APPROVAL)
                    try:
                        messages.append(await self._stage_for_approval(session, call))
                    except ActionStoreError as e:
                        return self._fatal(session, e)

            if session.pending_actions:
                self._finish(session)
                return AgentResult(
                    content=content or DEFAULT_APPROVAL_PROMPT,
                    requires_approval=True,
                    pending_actions=session.pending_actions,
                    executed_actions=session.executed_actions,
                    iterations=session.iteration_count,
                )

        limit = IterationLimitExceeded(session.iteration_count, user_id)
        logger.warning(
            f"[Agent] {limit.message} for {user_id}, "
            f"{len(session.executed_actions)} action(s) executed"
        )
        self._finish(session)
        return AgentResult(
            content=iteration_limit_content(session.last_narrative, session.executed_actions),
            executed_actions=session.executed_actions,
            iterations=session.iteration_count,
            iteration_limit_reached=True,
        )

    async def _run_auto(
        self,
        session: AgentSession,
        call: _ParsedCall,
        context: ToolExecutionContext,
    ) -> Dict[str, Any]:
        """Execute an auto-executable call and return its tool message."""
        try:
            result = await self.executor.execute(call.name, call.arguments, context)
        except ExternalServiceError as e:
            error_text = str(e.cause) or type(e.cause).__name__
            logger.warning(f"[Agent]   tool={call.name} ERROR: {error_text}")
            session.executed_actions.append(ExecutedAction(
                tool_name=call.name,
                params=call.arguments,
                status="failed",
                error=error_text,
            ))
            self._audit.log_tool_execution(
                user_id=session.user_id, tool_name=call.name, params=call.arguments,
                success=False, duration_ms=0, error=error_text,
            )
            return self._tool_message(call.id, tool_error_message(call.name, error_text), is_error=True)

        logger.info(f"[Agent]   tool={call.name} OK ({result.duration_ms}ms)")
        session.executed_actions.append(ExecutedAction(
            tool_name=call.name,
            params=call.arguments,
            status="executed",
            result=self._result_payload(result),
            duration_ms=result.duration_ms,
        ))
        self._audit.log_tool_execution(
            user_id=session.user_id, tool_name=call.name, params=call.arguments,
            success=True, duration_ms=result.duration_ms,
        )
        return self._tool_message(
            call.id,
            json.dumps({"success": True, **self._result_payload(result)}, ensure_ascii=False, default=str),
        )

    async def _stage_for_approval(self, session: AgentSession, call: _ParsedCall) -> Dict[str, Any]:
        """Persist an approval-required call as a pending action."""
        try:
            action = await self.action_store.create(
                user_id=session.user_id,
                conversation_id=session.conversation_id,
                tool_name=call.name,
                input_params=call.arguments,
            )
        except Exception as e:
            logger.error(f"[Agent]   tool={call.name} could not be staged: {e}", exc_info=True)
            raise ActionStoreError(
                f"Could not save the {call.name} action for approval",
                cause=e,
                tool_name=call.name,
            ) from e
        session.pending_actions.append(PendingAction(
            action_id=action.id,
            tool_name=call.name,
            params=call.arguments,
            description=self.registry.describe(call.name, call.arguments),
        ))
        logger.info(f"[Agent]   tool={call.name} staged for approval as {action.id}")
        self._audit.log_action_staged(
            user_id=session.user_id, action_id=action.id,
            tool_name=call.name, params=call.arguments,
        )
        return self._tool_message(call.id, PENDING_APPROVAL_PLACEHOLDER)

    # ==========================================================================
    # resume_after_approval
    # ==========================================================================

    async def resume_after_approval(
        self,
        user_id: str,
        action_ids: Sequence[str],
        decision: Union[ApprovalDecision, str],
        follow_up: bool = False,
    ) -> AgentResult:
        """
        Approve or reject pending actions.

        Each id is processed independently: a missing, foreign or already
        processed id, or a store failure while handling it, becomes an error
        outcome and the rest of the batch still runs.
        """
        decision = ApprovalDecision(decision)
        context = await self._build_context(user_id, None)
        outcomes: List[ActionOutcome] = []
        executed: List[ExecutedAction] = []

        for action_id in action_ids:
            try:
                action = await self._load_pending(user_id, action_id)
                if decision == ApprovalDecision.REJECT:
                    outcome = await self._reject(action)
                else:
                    outcome = await self._approve(action, context)
                    executed.append(ExecutedAction(
                        tool_name=action.tool_name,
                        params=action.input_params,
                        status=outcome.status,
                        result=outcome.result if outcome.status == ActionStatus.EXECUTED.value else None,
                        error=outcome.error,
                    ))
            except (ActionNotFoundError, ActionAlreadyProcessedError) as e:
                logger.info(f"[Approval] {action_id}: {e.message}")
                outcome = ActionOutcome(
                    action_id=action_id,
                    status="error",
                    tool_name=getattr(e, "tool_name", None),
                    error=e.message,
                    error_code=e.code,
                )
            except ActionStoreError as e:
                outcome = ActionOutcome(
                    action_id=action_id,
                    status="error",
                    tool_name=e.tool_name,
                    result=e.result,
                    error=f"{e.message}: {e.cause}",
                    error_code=e.code,
                )
            outcomes.append(outcome)
            self._audit.log_approval_decision(
                user_id=user_id,
                action_id=action_id,
                tool_name=outcome.tool_name,
                decision=decision.value,
                outcome=outcome.error_code or outcome.status,
            )

        content = approval_summary(outcomes)
        iterations = 0
        if follow_up and executed:
            narrative = await self._follow_up_narrative(outcomes)
            iterations = 1
            if narrative:
                content = narrative

        return AgentResult(
            content=content,
            executed_actions=executed,
            outcomes=outcomes,
            iterations=iterations,
        )

    async def _load_pending(self, user_id: str, action_id: str) -> Action:
        try:
            action = await self.action_store.get(action_id)
        except ActionNotFoundError:
            raise
        except Exception as e:
            logger.error(f"[Approval] Could not load {action_id}: {e}", exc_info=True)
            raise ActionStoreError("Could not load action", cause=e, action_id=action_id) from e
        if action.user_id != user_id:
            logger.warning(f"[Approval] {user_id} tried to act on {action_id} owned by another user")
            raise ActionNotFoundError(action_id)
        if action.status != ActionStatus.PENDING:
            raise ActionAlreadyProcessedError(action_id, action.status.value, action.tool_name)
        return action

    async def _claim(self, action: Action, to_status: ActionStatus) -> Action:
        """pending -> approved/rejected; a lost race reads as already processed."""
        try:
            return await self.action_store.transition(action.id, {ActionStatus.PENDING}, to_status)
        except ActionConflictError as e:
            raise ActionAlreadyProcessedError(action.id, e.current_status, action.tool_name) from e
        except Exception as e:
            logger.error(f"[Approval] Could not mark {action.id} {to_status.value}: {e}", exc_info=True)
            raise ActionStoreError(
                f"Could not mark action {to_status.value}",
                cause=e,
                action_id=action.id,
                tool_name=action.tool_name,
            ) from e

    async def _record(self, action: Action, to_status: ActionStatus, result: Dict[str, Any], **fields: Any) -> None:
        """approved -> executed/failed, after the handler has run."""
        try:
            await self.action_store.transition(
                action.id, {ActionStatus.APPROVED}, to_status, result=result, **fields,
            )
        except Exception as e:
            logger.error(
                f"[Approval] {action.id} ({action.tool_name}) ran but could not be marked "
                f"{to_status.value}; left in approved: {e}",
                exc_info=True,
            )
            raise ActionStoreError(
                "Action ran but its outcome could not be saved",
                cause=e,
                action_id=action.id,
                tool_name=action.tool_name,
                result=result,
            ) from e

    async def _reject(self, action: Action) -> ActionOutcome:
        await self._claim(action, ActionStatus.REJECTED)
        logger.info(f"[Approval] {action.id} ({action.tool_name}) rejected")
        return ActionOutcome(action_id=action.id, status=ActionStatus.REJECTED.value, tool_name=action.tool_name)

    async def _approve(self, action: Action, context: ToolExecutionContext) -> ActionOutcome:
        await self._claim(action, ActionStatus.APPROVED)
        context = ToolExecutionContext(
            user_id=context.user_id,
            conversation_id=action.conversation_id,
            credentials=context.credentials,
            metadata={**context.metadata, "action_id": action.id},
        )

        try:
            result = await self.executor.execute(action.tool_name, action.input_params, context)
        except (ExternalServiceError, UnknownToolError, InvalidParamsError) as e:
            error_text = str(e.cause) if isinstance(e, ExternalServiceError) else e.message
            logger.warning(f"[Approval] {action.id} ({action.tool_name}) failed: {error_text}")
            error_info = {"error": error_text, "code": e.code}
            await self._record(action, ActionStatus.FAILED, error_info, error_message=error_text)
            self._audit.log_tool_execution(
                user_id=action.user_id, tool_name=action.tool_name, params=action.input_params,
                success=False, duration_ms=0, error=error_text, action_id=action.id,
            )
            return ActionOutcome(
                action_id=action.id,
                status=ActionStatus.FAILED.value,
                tool_name=action.tool_name,
                error=error_text,
                error_code=e.code,
            )

        payload = self._result_payload(result)
        await self._record(action, ActionStatus.EXECUTED, payload, duration_ms=result.duration_ms)
        logger.info(f"[Approval] {action.id} ({action.tool_name}) executed in {result.duration_ms}ms")
        self._audit.log_tool_execution(
            user_id=action.user_id, tool_name=action.tool_name, params=action.input_params,
            success=True, duration_ms=result.duration_ms, action_id=action.id,
        )
        return ActionOutcome(
            action_id=action.id,
            status=ActionStatus.EXECUTED.value,
            tool_name=action.tool_name,
            result=payload,
        )

    async def _follow_up_narrative(self, outcomes: List[ActionOutcome]) -> Optional[str]:
        """One tool-less completion describing the outcomes; None on any failure."""
        lines = [json.dumps(o.to_dict(), ensure_ascii=False, default=str) for o in outcomes]
        messages = [
            {"role": "system", "content": self._build_system_prompt()},
            {
                "role": "user",
                "content": (
                    "The user reviewed the proposed actions. Outcomes:\n"
                    + "\n".join(lines)
                    + "\n\nBriefly tell the user what happened and suggest a next step if useful."
                ),
            },
        ]
        try:
            response = await asyncio.wait_for(
                self.llm_client.chat_completion(
                    messages=messages,
                    config={"max_tokens": self.config.follow_up_max_tokens},
                ),
                timeout=self.config.llm_call_timeout,
            )
        except Exception as e:
            logger.warning(f"[Approval] Follow-up narrative failed, using summary: {e}", exc_info=True)
            return None
        return (getattr(response, "content", "") or "").strip() or None

    # ==========================================================================
    # Helpers
    # ==========================================================================

    async def _agent_enabled(self, user_id: str) -> bool:
        if self.feature_gate is None:
            return True
        try:
            return await self.feature_gate.is_agent_enabled(user_id)
        except Exception as e:
            logger.error(f"[Agent] Feature gate lookup failed for {user_id}: {e}", exc_info=True)
            raise FeatureGateError(user_id, e) from e

    async def _build_context(self, user_id: str, conversation_id: Optional[str]) -> ToolExecutionContext:
        credentials: Dict[str, Any] = {}
        if self.credentials_provider is not None:
            credentials = await self.credentials_provider.get_credentials(user_id) or {}
        return ToolExecutionContext(
            user_id=user_id,
            conversation_id=conversation_id,
            credentials=credentials,
        )

    def _build_system_prompt(self) -> str:
        return self._system_prompt or build_system_prompt()

    def _finish(self, session: AgentSession) -> None:
        session.move_to(AgentState.RESPONDING)
        session.move_to(AgentState.DONE)

    def _degraded(self, session: AgentSession, error: CompletionError) -> AgentResult:
        category, message = classify_completion_error(error)
        attempts = error.details.get("attempts", 1)
        logger.warning(f"[Agent] Completion unavailable ({category}) after {attempts} attempt(s): {error.message}")
        self._audit.log_degraded(user_id=session.user_id, reason=category, attempts=attempts)
        self._finish(session)
        return AgentResult(
            content=message,
            executed_actions=session.executed_actions,
            iterations=session.iteration_count,
            degraded=True,
        )

    def _fatal(self, session: AgentSession, error: AgentError) -> AgentResult:
        logger.error(f"[Agent] {error.code}: {error.message}")
        self._finish(session)
        return AgentResult(
            content=f"Sorry, I couldn't process that request: {error.message}",
            pending_actions=session.pending_actions,
            executed_actions=session.executed_actions,
            iterations=session.iteration_count,
            error={"code": error.code, "message": error.message},
        )

    @staticmethod
    def _parse_tool_calls(response: Any, iteration: int) -> List[_ParsedCall]:
        """Normalize tool calls; string arguments are decoded as JSON."""
        parsed: List[_ParsedCall] = []
        for index, tc in enumerate(getattr(response, "tool_calls", None) or []):
            name = tc.name
            arguments = tc.arguments
            if arguments is None:
                arguments = {}
            elif isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments) if arguments.strip() else {}
                except json.JSONDecodeError as e:
                    raise InvalidParamsError(name, [f"root: arguments are not valid JSON ({e.msg})"])
            parsed.append(_ParsedCall(
                id=getattr(tc, "id", None) or f"call_{iteration}_{index}",
                name=name,
                arguments=arguments,
            ))
        return parsed

    @staticmethod
    def _assistant_message(content: str, calls: List[_ParsedCall]) -> Dict[str, Any]:
        return {
            "role": "assistant",
            "content": content or None,
            "tool_calls": [
                {
                    "id": c.id,
                    "type": "function",
                    "function": {"name": c.name, "arguments": json.dumps(c.arguments, default=str)},
                }
                for c in calls
            ],
        }

    @staticmethod
    def _tool_message(tool_call_id: str, content: str, is_error: bool = False) -> Dict[str, Any]:
        if is_error:
            content = f"{TOOL_ERROR_PREFIX}{content}"
        return {"role": "tool", "tool_call_id": tool_call_id, "content": content}

    @staticmethod
    def _result_payload(result: ToolResult) -> Dict[str, Any]:
        return {"summary": result.summary, "data": result.data}
