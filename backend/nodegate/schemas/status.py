from pydantic import BaseModel, Field

from nodegate.models.domain import OnboardingState, ParticipantState


class NodeStatusRequest(BaseModel):
    onboarding_state: OnboardingState
    participant_state: ParticipantState
    seconds_until_next_poc: int = Field(ge=0)
    failing_model: str = ""
    has_models: bool = True
    previous_onboarding_state: OnboardingState | None = None
    previous_participant_state: ParticipantState | None = None


class NodeStatusReport(BaseModel):
    onboarding_message: str
    participant_message: str
    no_model_guidance: str = ""
