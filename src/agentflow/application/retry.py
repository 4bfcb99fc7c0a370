"""
RetryCoordinator: bounded retry with error correction around one agent call.

Manages only the attempt loop of a single node. Node and run statuses are
managed by the Scheduler.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace

from agentflow.application.cancellation import CancelToken
from agentflow.application.ledger import RunLedger
from agentflow.domain.exceptions import (
    AgentError,
    CancellationError,
    PermanentError,
    RetriesExhausted,
    TransientError,
)
from agentflow.domain.interfaces import AgentHandler
from agentflow.domain.models import (
    AgentConfig,
    AgentContext,
    AgentResult,
    LogLevel,
    RetryPolicy,
)
from agentflow.domain.prompts import CorrectionTemplate

logger = logging.getLogger("agentflow.retry")

AttemptFailedCallback = Callable[[int, AgentError], None]


class RetryCoordinator:
    """
    Executes an agent handler with retry logic.

    Every attempt outcome is written to the Run Ledger with its attempt
    number: WARN for a retryable failure, ERROR for a permanent one, INFO
    for success. After each retryable failure a corrective instruction is
    appended to the context the next attempt sees.
    """

    def __init__(
        self,
        ledger: RunLedger,
        policy: RetryPolicy | None = None,
        timeout: float | None = None,
        correction_template: CorrectionTemplate | None = None,
        on_attempt_failed: AttemptFailedCallback | None = None,
    ):
        """
        Args:
            ledger: Ledger of the run the node belongs to
            policy: Attempt budget and backoff (default: 3 attempts, no delay)
            timeout: Per-attempt bound in seconds (None: unbounded)
            correction_template: Wording of the corrective instruction
            on_attempt_failed: Called with (attempt, error) after each failure
        """
        self._ledger = ledger
        self._policy = policy or RetryPolicy()
        self._timeout = timeout
        self._correction = correction_template or CorrectionTemplate()
        self._on_attempt_failed = on_attempt_failed

    async def run_with_retry(
        self,
        handler: AgentHandler,
        context: AgentContext,
        config: AgentConfig,
        max_attempts: int | None = None,
        cancel: CancelToken | None = None,
    ) -> AgentResult:
        """
        Invoke ``handler`` until it succeeds or the budget is spent.

        Args:
            handler: The resolved agent
            context: Context of the first attempt
            config: The node's agent configuration
            max_attempts: Overrides ``config.max_attempts`` and the policy
            cancel: Checked before every attempt and during backoff

        Returns:
            Result of the first successful attempt

        Raises:
            RetriesExhausted: If every attempt failed with TransientError
            PermanentError: On the first non-retryable failure
            CancellationError: If the run was cancelled between attempts or
                during the agent call
        """
        budget = next(
            value
            for value in (max_attempts, config.max_attempts, self._policy.max_attempts)
            if value is not None
        )
        if budget < 1:
            raise ValueError(f"max_attempts must be at least 1, got {budget}")
        timeout = config.timeout if config.timeout is not None else self._timeout
        cancel = cancel or CancelToken()
        node_id = context.node_id
        corrections = list(context.corrections)
        last_error: AgentError | None = None

        for attempt in range(1, budget + 1):
            if attempt > 1:
                self._ledger.clear_fragments(node_id)
                if await cancel.sleep(self._policy.delay_before(attempt)):
                    raise CancellationError(context.run_id, attempt - 1)
            cancel.raise_if_cancelled(context.run_id, attempt - 1)

            attempt_context = replace(
                context, attempt=attempt, corrections=tuple(corrections)
            )
            try:
                result = await self._attempt(
                    handler, attempt_context, config, timeout, cancel
                )
            except TransientError as e:
                last_error = e
                self._ledger.append_log(
                    LogLevel.WARN,
                    f"Attempt {attempt}/{budget} failed: {e.reason}",
                    node_id=node_id,
                    attempt=attempt,
                )
                self._notify(attempt, e)
                corrections.append(self._correction.render(e.reason, attempt))
                continue
            except PermanentError as e:
                self._ledger.append_log(
                    LogLevel.ERROR,
                    f"Attempt {attempt}/{budget} failed permanently: {e.reason}",
                    node_id=node_id,
                    attempt=attempt,
                )
                self._notify(attempt, e)
                raise
            except (CancellationError, asyncio.CancelledError):
                self._ledger.append_log(
                    LogLevel.WARN,
                    f"Attempt {attempt}/{budget} cancelled",
                    node_id=node_id,
                    attempt=attempt,
                )
                raise

            self._ledger.append_log(
                LogLevel.INFO,
                f"Attempt {attempt}/{budget} succeeded",
                node_id=node_id,
                attempt=attempt,
            )
            return result

        if last_error is None:
            raise RuntimeError(f"No attempt of node '{node_id}' was recorded")
        raise RetriesExhausted(budget, last_error)

    async def _attempt(
        self,
        handler: AgentHandler,
        context: AgentContext,
        config: AgentConfig,
        timeout: float | None,
        cancel: CancelToken,
    ) -> AgentResult:
        """One bounded, cancellable invocation with errors classified."""
        call = handler.invoke(context, config)
        if timeout is not None:
            call = asyncio.wait_for(call, timeout=timeout)
        task = asyncio.ensure_future(call)
        cancelled = asyncio.ensure_future(cancel.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancelled}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            cancelled.cancel()

        if task not in done:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise CancellationError(context.run_id, context.attempt)

        try:
            return task.result()
        except asyncio.CancelledError as e:
            raise TransientError("agent call was cancelled") from e
        except TimeoutError as e:
            bound = f" after {timeout:g}s" if timeout is not None else ""
            raise TransientError(f"timed out{bound}") from e
        except AgentError:
            raise
        except Exception as e:
            logger.exception(
                "Agent '%s' raised an unexpected error on node '%s'",
                context.agent_id,
                context.node_id,
            )
            raise PermanentError(f"{type(e).__name__}: {e}") from e

    def _notify(self, attempt: int, error: AgentError) -> None:
        if self._on_attempt_failed is not None:
            self._on_attempt_failed(attempt, error)
