"""
Reasoning loop (ReAct style) over a catalog of remote tools.

Each iteration prompts the model with the catalog and the transcript, parses an
action out of the reply, completes its arguments, executes it through the
supervisor and records what happened. The run ends on a completion phrase, a
checkpoint confirmation, a cancellation, an error, or the iteration ceiling.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from ..base.context import AgentContext
from ..base.hooks import HookEvents, HookManager
from ..base.providers import CheckpointProvider, FieldProvider
from ..base.tool import ToolDescriptor
from ..errors import ToolNotFound, UserCancelled
from ..llm import ModelBackend, ModelReply, tools_to_functions
from .classifier import CompletionOracle, OutcomeClassifier
from .parser import extract_thought, parse_action, parse_tool_call
from .prompts import build_messages
from .resolver import ParameterResolver
from .schemas import AgentRunResult, ParsedAction, RunStatus
from .supervisor import ExecutionSupervisor

logger = logging.getLogger(__name__)


class ReactAgent:
    """
    Drives the think-act-observe loop for one query at a time.

    Loop Logic:
    - Think: ask the model for the next step
    - If it names a tool: resolve arguments, execute, observe, continue
    - If it does not: keep the reply as a thought and check for completion
    - After every iteration: ask the checkpoint provider, if any
    """

    def __init__(
        self,
        model: ModelBackend,
        transport: Any,
        name: str = "ReactAgent",
        tools: Optional[Sequence[ToolDescriptor]] = None,
        field_provider: Optional[FieldProvider] = None,
        checkpoint: Optional[CheckpointProvider] = None,
        max_iterations: int = 10,
        max_execution_retries: int = 2,
        max_parameter_retries: int = 3,
        backoff: float = 1.0,
        classifier: Optional[OutcomeClassifier] = None,
        oracle: Optional[CompletionOracle] = None,
        hooks: Optional[Union[List[Callable], HookManager]] = None,
        native_tools: bool = False,
        verbose: bool = False,
    ):
        """
        Args:
            model: Backend producing the replies
            transport: Connected tool channel (`call_tool`, `get_tools`, `list_tools`)
            name: Agent name, used in logs and the run context
            tools: Catalog to offer; fetched from the transport when omitted
            field_provider: Source of values for missing arguments
            checkpoint: Asked "is the task complete?" after each iteration
            max_iterations: Iteration ceiling
            max_execution_retries: Extra attempts per tool call
            max_parameter_retries: Extra passes per parameter resolution
            backoff: Seconds to wait before retrying a transport failure
            hooks: Decorated hook functions or a ready HookManager
            native_tools: Send the catalog as native tools and honor `tool_calls`
            verbose: Print iteration progress
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")

        self.name = name
        self.model = model
        self.transport = transport
        self.max_iterations = max_iterations
        self.native_tools = native_tools
        self.verbose = verbose

        self.resolver = ParameterResolver(field_provider, max_retries=max_parameter_retries)
        self.supervisor = ExecutionSupervisor(
            transport,
            self.resolver,
            classifier=classifier,
            max_retries=max_execution_retries,
            backoff=backoff,
        )
        self.oracle = oracle or CompletionOracle(checkpoint)

        self._tools: Dict[str, ToolDescriptor] = {t.name: t for t in tools or []}
        self.hook_manager = self._setup_hooks(hooks)
        self.context: Optional[AgentContext] = None

    def _setup_hooks(
        self, hooks: Optional[Union[List[Callable], HookManager]]
    ) -> HookManager:
        if isinstance(hooks, HookManager):
            return hooks

        manager = HookManager(verbose=self.verbose)
        for hook_func in hooks or []:
            if hasattr(hook_func, "_hook_event"):
                manager.register(hook_func._hook_event, hook_func)
        return manager

    @property
    def tools(self) -> List[ToolDescriptor]:
        return list(self._tools.values())

    def get_tool(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    async def _load_catalog(self) -> None:
        if self._tools:
            return
        descriptors = self.transport.get_tools() or await self.transport.list_tools()
        self._tools = {d.name: d for d in descriptors}
        logger.info(f"{self.name} loaded {len(self._tools)} tools")

    async def process(self, query: str) -> AgentRunResult:
        """
        Run the loop for `query`.

        Never raises for failures inside the run; the returned result carries
        the status, the transcript and the per-tool statistics.
        """
        self.context = AgentContext(agent_name=self.name, query=query)
        status = RunStatus.INCOMPLETE
        error: Optional[str] = None

        await self.hook_manager.trigger(HookEvents.AGENT_START, self.context, agent=self)

        try:
            await self._load_catalog()
            status = await self._run_loop(query)
        except UserCancelled:
            logger.info(f"{self.name} run cancelled by user")
            status = RunStatus.CANCELLED
        except Exception as e:
            logger.error(f"{self.name} run aborted: {e}", exc_info=True)
            status = RunStatus.FAILED
            error = str(e)
            await self.hook_manager.trigger(
                HookEvents.AGENT_ERROR, self.context, agent=self, error=e
            )

        result = AgentRunResult(
            query=query,
            status=status,
            iterations=self.context.iteration,
            steps=list(self.context.steps),
            tool_stats={k: v.model_copy(deep=True) for k, v in self.context.tool_stats.items()},
            error=error,
        )

        await self.hook_manager.trigger(
            HookEvents.AGENT_END, self.context, agent=self, result=result
        )
        return result

    async def _run_loop(self, query: str) -> RunStatus:
        while self.context.iteration < self.max_iterations:
            self.context.iteration += 1

            await self.hook_manager.trigger(HookEvents.LOOP_START, self.context, agent=self)

            if self.verbose:
                print(f"\n--- Iteration {self.context.iteration}/{self.max_iterations} ---")

            complete = await self._iterate(query)

            await self.hook_manager.trigger(HookEvents.LOOP_END, self.context, agent=self)

            if complete:
                if self.verbose:
                    print("✅ Model reported the task complete")
                return RunStatus.COMPLETED

            if await self.oracle.confirm():
                if self.verbose:
                    print("✅ Task confirmed complete")
                return RunStatus.COMPLETED

        logger.info(f"{self.name} reached the iteration ceiling ({self.max_iterations})")
        return RunStatus.INCOMPLETE

    async def _iterate(self, query: str) -> bool:
        """One iteration. Returns True when the reply signals completion."""
        reply = await self._think(query)
        action = self._parse(reply)

        if action is None:
            text = reply.content.strip()
            self.context.add_thought(text or "(empty reply)")
            if self.verbose:
                print(f"💭 {text[:300]}")
            return self.oracle.matches(text)

        thought = extract_thought(reply.content) or f"I should use {action.tool_name}."
        self.context.add_thought(thought)

        if self.verbose:
            print(f"💭 {thought[:300]}")

        tool = self.get_tool(action.tool_name)
        if tool is None:
            message = str(ToolNotFound(action.tool_name))
            logger.warning(message)
            self.context.add_observation(message, success=False, error=message)
            if self.verbose:
                print(f"  ❌ {message}")
            return False

        await self._act(tool, action)
        return False

    async def _think(self, query: str) -> ModelReply:
        messages = build_messages(
            query, self.tools, self.context.steps, self.oracle.phrases
        )
        native = tools_to_functions(self.tools) if self.native_tools else None

        await self.hook_manager.trigger(
            HookEvents.LLM_CALL, self.context, agent=self, messages=messages
        )

        reply = await self.model.complete(messages, tools=native)

        await self.hook_manager.trigger(
            HookEvents.LLM_RESPONSE, self.context, agent=self, response=reply
        )
        return reply

    def _parse(self, reply: ModelReply) -> Optional[ParsedAction]:
        if self.native_tools and reply.tool_calls:
            if len(reply.tool_calls) > 1:
                logger.debug(
                    f"Model made {len(reply.tool_calls)} tool calls; using the first"
                )
            action = parse_tool_call(reply.tool_calls[0])
            if action is not None:
                return action
        return parse_action(reply.content)

    async def _act(self, tool: ToolDescriptor, action: ParsedAction) -> None:
        """Resolve, execute and observe one action."""
        collected = await self.resolver.resolve(tool, action.parameters)

        if collected.user_cancelled:
            self.context.add_observation(
                "Cancelled by user", success=False, error=collected.error
            )
            raise UserCancelled(collected.error)

        if not collected.success:
            self.context.add_observation(
                collected.error, success=False, error=collected.error
            )
            self.context.record_outcome(tool.name, False, collected.error)
            if self.verbose:
                print(f"  ❌ {collected.error}")
            return

        self.context.add_action(tool.name, collected.arguments)

        if self.verbose:
            print(f"  ⚡ Calling {tool.name} with {collected.arguments}")

        await self.hook_manager.trigger(
            HookEvents.TOOL_CALL,
            self.context,
            agent=self,
            tool=tool,
            parameters=collected.arguments,
        )

        result = await self.supervisor.execute(tool, collected.arguments)

        await self.hook_manager.trigger(
            HookEvents.TOOL_RESULT, self.context, agent=self, tool=tool, result=result
        )

        if result.user_cancelled:
            self.context.add_observation(
                "Cancelled by user", success=False, error=result.error
            )
            raise UserCancelled(result.error)

        # Arguments re-resolved during execution are what was actually sent
        if result.arguments != collected.arguments:
            self.context.add_action(tool.name, result.arguments)

        content = result.content if result.content is not None else (result.error or "")
        self.context.add_observation(content, success=result.success, error=result.error)
        self.context.record_outcome(tool.name, result.success, result.error)

        if self.verbose:
            status = "✅" if result.success else "❌"
            print(f"  {status} Result: {content[:300]}")
