from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from nodegate.core.logging import get_logger
from nodegate.models.node import NodeConfig, NodeConfigFile


class NodeConfigSource(Protocol):
    def get_nodes(self) -> list[NodeConfig]: ...

    def get_current_node_version(self) -> str: ...


class NodeConfigStore:
    """
    Read-only view over the operator's node configuration file.

    File layout:
        {"node_version": "v3.0.8", "nodes": [{"id": ..., "host": ..., "models": {...}}]}
    """

    def __init__(self, nodes: list[NodeConfig] | None = None, node_version: str = "") -> None:
        self._nodes: list[NodeConfig] = list(nodes or [])
        self._node_version = node_version
        self.logger = get_logger("nodegate.config")

    @classmethod
    def from_file(cls, path: str | Path) -> NodeConfigStore:
        config_path = Path(path)
        store = cls()
        if not config_path.exists():
            store.logger.warning("nodes_config_missing", extra={"path": str(config_path)})
            return store

        try:
            raw = config_path.read_text(encoding="utf-8")
        except OSError as exc:
            store.logger.error("nodes_config_unreadable", extra={"path": str(config_path), "error": str(exc)})
            return store

        try:
            parsed = NodeConfigFile.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as exc:
            backup = config_path.with_suffix(".invalid.json")
            try:
                config_path.replace(backup)
            except OSError as move_exc:
                store.logger.warning(
                    "nodes_config_backup_failed",
                    extra={"path": str(config_path), "error": str(move_exc)},
                )
            store.logger.error(
                "nodes_config_invalid",
                extra={"path": str(config_path), "backup": str(backup), "error": str(exc)},
            )
            return store

        store._nodes = parsed.nodes
        store._node_version = parsed.node_version.strip()
        store.logger.info(
            "nodes_config_loaded",
            extra={"path": str(config_path), "nodes": len(store._nodes), "event": "config.loaded"},
        )
        return store

    def get_nodes(self) -> list[NodeConfig]:
        return list(self._nodes)

    def get_current_node_version(self) -> str:
        return self._node_version
