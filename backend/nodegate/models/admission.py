from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nodegate.models.domain import AdmissionStage, OnboardingState, TestStatus


class TestMetrics(BaseModel):
    __test__ = False

    load_ms: dict[str, int] = Field(default_factory=dict)
    health_ms: int = 0
    resp_ms: int = 0


class TestOutcome(BaseModel):
    """Terminal record of one admission attempt against one node."""

    __test__ = False
    model_config = ConfigDict(frozen=True)

    node_id: str
    status: TestStatus
    failing_model: str = ""
    error: str = ""
    stage: AdmissionStage | None = None
    metrics: TestMetrics = Field(default_factory=TestMetrics)

    @model_validator(mode="after")
    def check_status_fields(self) -> "TestOutcome":
        if self.status == TestStatus.FAILED and not self.error:
            raise ValueError("failed outcome requires an error description")
        if self.status == TestStatus.SUCCESS and (self.failing_model or self.error or self.stage):
            raise ValueError("successful outcome must not carry failure details")
        return self

    @property
    def succeeded(self) -> bool:
        return self.status == TestStatus.SUCCESS


class SetNodeOnboardingStateCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["set_node_onboarding_state"] = "set_node_onboarding_state"
    node_id: str
    state: OnboardingState


class SetNodeFailureReasonCommand(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["set_node_failure_reason"] = "set_node_failure_reason"
    node_id: str
    reason: str


NodeCommand = Annotated[
    SetNodeOnboardingStateCommand | SetNodeFailureReasonCommand,
    Field(discriminator="kind"),
]


class AutoTestRequest(BaseModel):
    seconds_until_next_poc: int


class AutoTestResponse(BaseModel):
    triggered: bool
    items: list[TestOutcome]


class CommandListResponse(BaseModel):
    items: list[NodeCommand]
