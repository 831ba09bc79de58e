from starlette.requests import HTTPConnection

from nodegate.core.config import Settings
from nodegate.services.admission import AdmissionTestRunner
from nodegate.services.command_queue import InMemoryCommandQueue
from nodegate.services.node_config_store import NodeConfigStore
from nodegate.services.status_reporter import StatusMessageBuilder


def get_settings(connection: HTTPConnection) -> Settings:
    return connection.app.state.settings


def get_config_store(connection: HTTPConnection) -> NodeConfigStore:
    return connection.app.state.config_store


def get_command_queue(connection: HTTPConnection) -> InMemoryCommandQueue:
    return connection.app.state.command_queue


def get_runner(connection: HTTPConnection) -> AdmissionTestRunner:
    return connection.app.state.runner


def get_status_builder(connection: HTTPConnection) -> StatusMessageBuilder:
    return connection.app.state.status_builder
