from fastapi import APIRouter, Depends

from nodegate.api.deps import get_command_queue, get_config_store, get_runner, get_settings, get_status_builder
from nodegate.core.config import Settings
from nodegate.core.security import require_admin_api_key
from nodegate.models.admission import AutoTestRequest, AutoTestResponse, CommandListResponse, TestOutcome
from nodegate.models.node import NodeListResponse
from nodegate.schemas.status import NodeStatusReport, NodeStatusRequest
from nodegate.services.admission import AdmissionTestRunner
from nodegate.services.command_queue import InMemoryCommandQueue
from nodegate.services.node_config_store import NodeConfigStore
from nodegate.services.status_reporter import StatusMessageBuilder

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_api_key)])


@router.get("/nodes", response_model=NodeListResponse)
async def admin_nodes(store: NodeConfigStore = Depends(get_config_store)) -> NodeListResponse:
    return NodeListResponse(items=store.get_nodes())


@router.post("/nodes/auto-test", response_model=AutoTestResponse)
async def run_auto_tests(
    payload: AutoTestRequest,
    runner: AdmissionTestRunner = Depends(get_runner),
    builder: StatusMessageBuilder = Depends(get_status_builder),
    settings: Settings = Depends(get_settings),
) -> AutoTestResponse:
    builder.log_timing_guidance(payload.seconds_until_next_poc)
    triggered = runner.should_auto_test(payload.seconds_until_next_poc)
    if triggered:
        builder.log_testing("Running automatic MLnode tests")
    items = await runner.run_auto_tests(payload.seconds_until_next_poc, timeout=settings.node_test_timeout_sec)
    return AutoTestResponse(triggered=triggered, items=items)


@router.post("/nodes/{node_id}/test", response_model=TestOutcome)
async def run_manual_test(
    node_id: str,
    runner: AdmissionTestRunner = Depends(get_runner),
    builder: StatusMessageBuilder = Depends(get_status_builder),
    settings: Settings = Depends(get_settings),
) -> TestOutcome:
    builder.log_testing(f"Running manual MLnode test for {node_id}")
    return await runner.run_manual_test(node_id, timeout=settings.node_test_timeout_sec)


@router.post("/status", response_model=NodeStatusReport)
async def render_status(
    payload: NodeStatusRequest,
    builder: StatusMessageBuilder = Depends(get_status_builder),
) -> NodeStatusReport:
    previous = payload.previous_onboarding_state
    if previous is not None and previous != payload.onboarding_state:
        builder.log_onboarding_transition(previous, payload.onboarding_state)
    previous_participant = payload.previous_participant_state
    if previous_participant is not None and previous_participant != payload.participant_state:
        builder.log_participant_status_change(previous_participant, payload.participant_state)
    return builder.build_status(
        payload.onboarding_state,
        payload.participant_state,
        payload.seconds_until_next_poc,
        failing_model=payload.failing_model,
        has_models=payload.has_models,
    )


@router.get("/commands", response_model=CommandListResponse)
async def queued_commands(queue: InMemoryCommandQueue = Depends(get_command_queue)) -> CommandListResponse:
    return CommandListResponse(items=await queue.snapshot())
