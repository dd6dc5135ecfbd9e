"""
LLM Client
Single-shot and streaming agent execution with error categorization and
call logging. Failed calls are never retried: the request fails and the user
resubmits without having been charged.
"""
import time
from typing import Any, AsyncIterator, Tuple
from loguru import logger
from pydantic_ai import Agent
from pydantic_ai.exceptions import UnexpectedModelBehavior

from deckslayer.core.exceptions import SchemaValidationError, UpstreamError
from deckslayer.utils.observability import log_llm_call
from deckslayer.utils.report_parser import args_text

StreamItem = Tuple[str, Any]


class LLMError(UpstreamError):
    """Provider call failed (network, quota, server error, refusal)."""

    def __init__(self, agent_name: str, category: str, detail: str):
        self.agent_name = agent_name
        self.category = category
        super().__init__(detail=f"{agent_name} [{category}]: {detail}")


def categorize_error(error: Exception) -> str:
    """Bucket a provider exception for logs."""
    error_msg = str(error).lower()

    if ("rate" in error_msg and "limit" in error_msg) or "quota" in error_msg:
        return "rate_limit"
    if "timeout" in error_msg or "timed out" in error_msg:
        return "timeout"
    if any(code in error_msg for code in ["500", "502", "503", "504"]):
        return "server_error"
    if "authentication" in error_msg or "api key" in error_msg or "401" in error_msg:
        return "authentication"
    if "invalid" in error_msg and "request" in error_msg:
        return "invalid_request"
    return "unknown"


def _model_name(agent: Agent) -> str:
    model = getattr(agent, "model", None)
    if model is None:
        return "unknown"
    return model if isinstance(model, str) else getattr(model, "model_name", str(model))


def _output_name(agent: Agent, agent_name: str) -> str:
    output_type = getattr(agent, "output_type", None)
    return getattr(output_type, "__name__", agent_name)


def _failed(agent: Agent, agent_name: str, start: float, error: Exception) -> UpstreamError:
    """Log a failed call and translate it into the error the caller raises."""
    duration_ms = (time.perf_counter() - start) * 1000

    if isinstance(error, UnexpectedModelBehavior):
        log_llm_call(
            agent_name=agent_name,
            model=_model_name(agent),
            duration_ms=duration_ms,
            success=False,
            error=f"schema: {error}"
        )
        return SchemaValidationError(_output_name(agent, agent_name), str(error))

    category = categorize_error(error)
    log_llm_call(
        agent_name=agent_name,
        model=_model_name(agent),
        duration_ms=duration_ms,
        success=False,
        error=f"{category}: {error}"
    )
    return LLMError(agent_name, category, str(error))


async def run_agent(agent: Agent, prompt: str, agent_name: str, deps: Any = None) -> Any:
    """
    Execute an agent once and return its output.

    Args:
        agent: The PydanticAI agent to run
        prompt: The prompt to send to the agent
        agent_name: Label used in logs and errors
        deps: Optional dependencies for the agent

    Returns:
        The agent's output (typed based on agent's output_type)

    Raises:
        SchemaValidationError: The model's output did not fit the agent's output type
        LLMError: For any other provider failure

    Example:
        >>> agent = Agent('google-gla:gemini-2.5-flash', output_type=AuditReport)
        >>> report = await run_agent(agent, "Review this deck", "IC Orchestrator")
    """
    start = time.perf_counter()

    try:
        if deps is not None:
            result = await agent.run(prompt, deps=deps)
        else:
            result = await agent.run(prompt)
    except Exception as e:
        raise _failed(agent, agent_name, start, e) from e

    duration_ms = (time.perf_counter() - start) * 1000
    output = result.output
    log_llm_call(
        agent_name=agent_name,
        model=_model_name(agent),
        duration_ms=duration_ms,
        output_chars=len(output) if isinstance(output, str) else None
    )
    return output


async def stream_agent_output(agent: Agent, prompt: str, agent_name: str) -> AsyncIterator[StreamItem]:
    """
    Execute a structured-output agent and follow its output call as it streams.

    Yields ("partial", text) with the raw arguments of the output call each
    time they grow, then exactly one ("complete", output) holding the output
    validated against the agent's output type. Any failure, before or during
    the stream, is raised instead of the completion.

    Raises:
        SchemaValidationError: The final output did not fit the output type
        LLMError: For any other provider failure
    """
    start = time.perf_counter()
    last_size = 0

    try:
        async with agent.run_stream(prompt) as result:
            async for response in result.stream_response(debounce_by=None):
                if not response.tool_calls:
                    continue
                text = args_text(response.tool_calls[-1].args)
                if len(text) > last_size:
                    last_size = len(text)
                    yield "partial", text
            output = await result.get_output()
    except Exception as e:
        raise _failed(agent, agent_name, start, e) from e

    duration_ms = (time.perf_counter() - start) * 1000
    logger.debug(f"{agent_name} stream finished with {last_size} argument chars")
    log_llm_call(
        agent_name=agent_name,
        model=_model_name(agent),
        duration_ms=duration_ms,
        output_chars=last_size
    )
    yield "complete", output
