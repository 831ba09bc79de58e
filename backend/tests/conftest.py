"""Shared fakes for the admission protocol collaborators."""

from __future__ import annotations

import asyncio

import pytest

from nodegate.models.domain import MLNodeState
from nodegate.models.node import ModelConfig, NodeConfig
from nodegate.services.command_queue import QueueError
from nodegate.services.node_client import NodeClientError


class FakeNodeClient:
    def __init__(
        self,
        fail_models: set[str] | None = None,
        health_ok: bool = True,
        health_error: str | None = None,
        inference_status: int = 200,
        inference_error: str | None = None,
        notify_error: str | None = None,
        notify_delay_sec: float = 0.0,
        load_delay_sec: float = 0.0,
        health_delay_sec: float = 0.0,
    ) -> None:
        self.fail_models = fail_models or set()
        self.health_ok = health_ok
        self.health_error = health_error
        self.inference_status = inference_status
        self.inference_error = inference_error
        self.notify_error = notify_error
        self.notify_delay_sec = notify_delay_sec
        self.load_delay_sec = load_delay_sec
        self.health_delay_sec = health_delay_sec

        self.poc_url = ""
        self.inference_url = ""
        self.up_calls: list[tuple[str, list[str]]] = []
        self.health_calls = 0
        self.inference_bodies: list[bytes] = []
        self.state_calls: list[tuple[MLNodeState, str]] = []
        self.closed = False

    async def inference_up(self, model_id: str, args: list[str]) -> None:
        self.up_calls.append((model_id, list(args)))
        if self.load_delay_sec:
            await asyncio.sleep(self.load_delay_sec)
        if model_id in self.fail_models:
            raise NodeClientError(f"failed to load {model_id}")

    async def inference_health(self) -> bool:
        self.health_calls += 1
        if self.health_delay_sec:
            await asyncio.sleep(self.health_delay_sec)
        if self.health_error:
            raise NodeClientError(self.health_error)
        return self.health_ok

    async def set_node_state(self, state: MLNodeState, reason: str) -> None:
        if self.notify_delay_sec:
            await asyncio.sleep(self.notify_delay_sec)
        self.state_calls.append((state, reason))
        if self.notify_error:
            raise NodeClientError(self.notify_error)

    async def post_chat_completion(self, body: bytes) -> int:
        self.inference_bodies.append(body)
        if self.inference_error:
            raise NodeClientError(self.inference_error)
        return self.inference_status

    async def close(self) -> None:
        self.closed = True


class FakeNodeClientFactory:
    def __init__(self, client: FakeNodeClient | None = None) -> None:
        self.client = client or FakeNodeClient()
        self.calls: list[tuple[str, str]] = []

    def __call__(self, poc_url: str, inference_url: str) -> FakeNodeClient:
        self.calls.append((poc_url, inference_url))
        self.client.poc_url = poc_url
        self.client.inference_url = inference_url
        return self.client


class FakeConfigSource:
    def __init__(self, nodes: list[NodeConfig] | None = None, version: str = "") -> None:
        self.nodes = nodes or []
        self.version = version

    def get_nodes(self) -> list[NodeConfig]:
        return list(self.nodes)

    def get_current_node_version(self) -> str:
        return self.version


class BrokenConfigSource(FakeConfigSource):
    def __init__(self, nodes: list[NodeConfig] | None = None, fail_version: bool = True, fail_nodes: bool = False) -> None:
        super().__init__(nodes)
        self.fail_version = fail_version
        self.fail_nodes = fail_nodes

    def get_nodes(self) -> list[NodeConfig]:
        if self.fail_nodes:
            raise RuntimeError("config unavailable")
        return super().get_nodes()

    def get_current_node_version(self) -> str:
        if self.fail_version:
            raise RuntimeError("config unavailable")
        return super().get_current_node_version()


class RecordingQueue:
    def __init__(self, reject: bool = False) -> None:
        self.reject = reject
        self.commands: list = []

    async def queue_message(self, command) -> None:
        if self.reject:
            raise QueueError("broker unavailable")
        self.commands.append(command)


def make_node(node_id: str = "node-1", models: list[str] | None = None) -> NodeConfig:
    model_ids = ["A", "B"] if models is None else models
    return NodeConfig(
        id=node_id,
        host="10.0.0.5",
        inference_port=5000,
        poc_port=8080,
        models={model_id: ModelConfig(args=["--tp", "1"]) for model_id in model_ids},
    )


@pytest.fixture
def node() -> NodeConfig:
    return make_node()


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()
