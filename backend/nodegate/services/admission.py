from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from time import perf_counter

import orjson

from nodegate.core.config import Settings
from nodegate.core.logging import LogSubsystem, get_logger
from nodegate.models.admission import (
    SetNodeFailureReasonCommand,
    SetNodeOnboardingStateCommand,
    TestMetrics,
    TestOutcome,
)
from nodegate.models.domain import AdmissionStage, MLNodeState, OnboardingState, TestStatus
from nodegate.models.node import NodeConfig
from nodegate.services.command_queue import CommandQueue
from nodegate.services.node_client import NodeClient
from nodegate.services.node_config_store import NodeConfigSource

HEALTH_NOT_OK = "health_not_ok"
NON_SUCCESS_STATUS_CODE = "non_success_status_code"
NODE_NOT_FOUND = "node_not_found"
NO_MODELS_CONFIGURED = "no_models_configured"
DEADLINE_EXCEEDED = "deadline_exceeded"

NodeClientFactory = Callable[[str, str], NodeClient]


def _elapsed_ms(started: float) -> int:
    return int((perf_counter() - started) * 1000)


def _error_text(exc: BaseException) -> str:
    return str(exc).strip() or exc.__class__.__name__


@dataclass
class _Attempt:
    stage: AdmissionStage = AdmissionStage.setup
    failing_model: str = ""
    metrics: TestMetrics = field(default_factory=TestMetrics)
    client: NodeClient | None = None


class AdmissionTestRunner:
    """
    Runs the node admission protocol: model load, health check, sample inference.

    Stages run strictly in order and the first failing stage ends the attempt.
    Outcomes are published to the command queue as onboarding state requests;
    the runner never mutates node state itself.
    """

    def __init__(
        self,
        config_source: NodeConfigSource,
        client_factory: NodeClientFactory,
        queue: CommandQueue | None = None,
        *,
        auto_test_threshold_sec: int = 3600,
        block_time_seconds: float = 6.0,
        failure_notify_timeout_sec: float = 5.0,
        run_sample_inference: bool = True,
        notify_node_on_failure: bool = True,
        sample_prompt: str = "Hello, how are you?",
        sample_max_tokens: int = 10,
    ) -> None:
        self.config_source = config_source
        self.client_factory = client_factory
        self.queue = queue
        self.auto_test_threshold_sec = auto_test_threshold_sec
        self.block_time_seconds = block_time_seconds
        self.failure_notify_timeout_sec = failure_notify_timeout_sec
        self.run_sample_inference = run_sample_inference
        self.notify_node_on_failure = notify_node_on_failure
        self.sample_prompt = sample_prompt
        self.sample_max_tokens = sample_max_tokens
        self.logger = get_logger("nodegate.admission", LogSubsystem.nodes)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        config_source: NodeConfigSource,
        client_factory: NodeClientFactory,
        queue: CommandQueue | None = None,
    ) -> AdmissionTestRunner:
        return cls(
            config_source,
            client_factory,
            queue,
            auto_test_threshold_sec=settings.auto_test_threshold_sec,
            block_time_seconds=settings.block_time_seconds,
            failure_notify_timeout_sec=settings.failure_notify_timeout_sec,
            run_sample_inference=settings.run_sample_inference,
            notify_node_on_failure=settings.notify_node_on_failure,
            sample_prompt=settings.sample_prompt,
            sample_max_tokens=settings.sample_max_tokens,
        )

    def should_auto_test(self, seconds_until_next_poc: int) -> bool:
        return seconds_until_next_poc > self.auto_test_threshold_sec

    def seconds_from_blocks(self, blocks: int) -> float:
        return max(0, blocks) * self.block_time_seconds

    async def run_node_test(self, node: NodeConfig, timeout: float | None = None) -> TestOutcome:
        """
        Test one node. `timeout` bounds the protocol stages; when it expires the
        stage that was running is reported as failed with `deadline_exceeded`.
        """
        attempt = _Attempt()
        try:
            try:
                version = self.config_source.get_current_node_version()
                attempt.client = self.client_factory(node.poc_url(version), node.inference_url)
            except Exception as exc:  # noqa: BLE001
                self._log_failure("MLnode test setup failed", node.id, exc)
                outcome = self._failed(node.id, attempt, _error_text(exc))
            else:
                try:
                    async with asyncio.timeout(timeout):
                        outcome = await self._run_stages(node, attempt)
                except TimeoutError:
                    self._log_failure(
                        "MLnode test deadline exceeded",
                        node.id,
                        stage=str(attempt.stage),
                        timeout=timeout,
                    )
                    outcome = self._failed(node.id, attempt, DEADLINE_EXCEEDED)

            if outcome.succeeded:
                await self._publish_success(node.id)
                self.logger.info("mlnode_test_succeeded", extra={"node_id": node.id, "event": "admission.succeeded"})
            else:
                await self._publish_failure(node.id, outcome.error, attempt.client)
        finally:
            if attempt.client is not None:
                await self._best_effort("close_node_client", node.id, attempt.client.close())
        return outcome

    async def run_auto_tests(self, seconds_until_next_poc: int, timeout: float | None = None) -> list[TestOutcome]:
        if not self.should_auto_test(seconds_until_next_poc):
            return []
        try:
            nodes = self.config_source.get_nodes()
        except Exception as exc:  # noqa: BLE001
            self.logger.error(
                "mlnode_auto_test_nodes_unavailable",
                extra={"error": _error_text(exc), "event": "admission.config_failed"},
            )
            return []
        outcomes: list[TestOutcome] = []
        for node in nodes:
            outcomes.append(await self.run_node_test(node, timeout=timeout))
        return outcomes

    async def run_manual_test(self, node_id: str, timeout: float | None = None) -> TestOutcome:
        try:
            nodes = self.config_source.get_nodes()
        except Exception as exc:  # noqa: BLE001
            self._log_failure("MLnode manual test could not read node config", node_id, exc)
            return TestOutcome(
                node_id=node_id,
                status=TestStatus.FAILED,
                error=_error_text(exc),
                stage=AdmissionStage.lookup,
            )
        for node in nodes:
            if node.id == node_id:
                return await self.run_node_test(node, timeout=timeout)
        self.logger.warning("mlnode_test_node_not_found", extra={"node_id": node_id, "event": "admission.not_found"})
        return TestOutcome(
            node_id=node_id,
            status=TestStatus.FAILED,
            error=NODE_NOT_FOUND,
            stage=AdmissionStage.lookup,
        )

    async def _run_stages(self, node: NodeConfig, attempt: _Attempt) -> TestOutcome:
        client = attempt.client
        metrics = attempt.metrics
        model_ids = node.sorted_model_ids()

        attempt.stage = AdmissionStage.model_load
        for model_id in model_ids:
            attempt.failing_model = model_id
            started = perf_counter()
            try:
                await client.inference_up(model_id, node.models[model_id].args)
            except Exception as exc:  # noqa: BLE001
                metrics.load_ms[model_id] = _elapsed_ms(started)
                self._log_failure("MLnode test failed during model loading", node.id, exc, model=model_id)
                return self._failed(node.id, attempt, _error_text(exc))
            metrics.load_ms[model_id] = _elapsed_ms(started)
        attempt.failing_model = ""

        attempt.stage = AdmissionStage.health
        started = perf_counter()
        try:
            ok = await client.inference_health()
        except Exception as exc:  # noqa: BLE001
            metrics.health_ms = _elapsed_ms(started)
            self._log_failure("MLnode health check failed", node.id, exc)
            return self._failed(node.id, attempt, _error_text(exc))
        metrics.health_ms = _elapsed_ms(started)
        if not ok:
            self._log_failure("MLnode health check not OK", node.id)
            return self._failed(node.id, attempt, HEALTH_NOT_OK)

        if not self.run_sample_inference:
            return TestOutcome(node_id=node.id, status=TestStatus.SUCCESS, metrics=metrics)

        attempt.stage = AdmissionStage.inference
        if not model_ids:
            self._log_failure("MLnode test has no model to address", node.id)
            return self._failed(node.id, attempt, NO_MODELS_CONFIGURED)

        started = perf_counter()
        try:
            body = orjson.dumps(
                {
                    "model": model_ids[0],
                    "messages": [{"role": "user", "content": self.sample_prompt}],
                    "max_tokens": self.sample_max_tokens,
                }
            )
        except orjson.JSONEncodeError as exc:
            self._log_failure("MLnode test failed to create test request", node.id, exc)
            return self._failed(node.id, attempt, _error_text(exc))

        try:
            status_code = await client.post_chat_completion(body)
        except Exception as exc:  # noqa: BLE001
            self._log_failure("MLnode test failed during inference request", node.id, exc)
            return self._failed(node.id, attempt, _error_text(exc))

        if not 200 <= status_code < 300:
            self._log_failure("MLnode test received non-success status code", node.id, status_code=status_code)
            return self._failed(node.id, attempt, NON_SUCCESS_STATUS_CODE)

        metrics.resp_ms = _elapsed_ms(started)
        return TestOutcome(node_id=node.id, status=TestStatus.SUCCESS, metrics=metrics)

    def _failed(self, node_id: str, attempt: _Attempt, error: str) -> TestOutcome:
        return TestOutcome(
            node_id=node_id,
            status=TestStatus.FAILED,
            failing_model=attempt.failing_model,
            error=error,
            stage=attempt.stage,
            metrics=attempt.metrics.model_copy(deep=True),
        )

    def _log_failure(self, message: str, node_id: str, exc: Exception | None = None, **fields) -> None:
        extra = {"node_id": node_id, "event": "admission.failed", **fields}
        if exc is not None:
            extra["error"] = _error_text(exc)
        self.logger.error(message, extra=extra)

    async def _publish_success(self, node_id: str) -> None:
        if self.queue is None:
            return
        await self._best_effort(
            "queue_onboarding_state",
            node_id,
            self.queue.queue_message(
                SetNodeOnboardingStateCommand(node_id=node_id, state=OnboardingState.WAITING_FOR_POC)
            ),
        )

    async def _publish_failure(self, node_id: str, reason: str, client: NodeClient | None) -> None:
        if self.queue is not None:
            await self._best_effort(
                "queue_onboarding_state",
                node_id,
                self.queue.queue_message(
                    SetNodeOnboardingStateCommand(node_id=node_id, state=OnboardingState.TEST_FAILED)
                ),
            )
            await self._best_effort(
                "queue_failure_reason",
                node_id,
                self.queue.queue_message(SetNodeFailureReasonCommand(node_id=node_id, reason=reason)),
            )
        # Without a client (setup failed) there is no endpoint to notify.
        if self.notify_node_on_failure and client is not None:
            await self._best_effort(
                "notify_node_test_failed",
                node_id,
                client.set_node_state(MLNodeState.TEST_FAILED, reason),
                timeout=self.failure_notify_timeout_sec,
            )

    async def _best_effort(
        self,
        action: str,
        node_id: str,
        awaitable: Awaitable[object],
        timeout: float | None = None,
    ) -> bool:
        """Await a side effect whose failure must never change the test outcome."""
        try:
            if timeout is None:
                await awaitable
            else:
                await asyncio.wait_for(awaitable, timeout=timeout)
            return True
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                "side_effect_discarded",
                extra={
                    "node_id": node_id,
                    "action": action,
                    "error": _error_text(exc),
                    "event": "admission.side_effect_failed",
                },
            )
            return False
