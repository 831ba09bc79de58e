from __future__ import annotations

from nodegate.core.logging import LogSubsystem, get_logger
from nodegate.models.domain import OnboardingState, ParticipantState
from nodegate.schemas.status import NodeStatusReport


def format_short_duration(seconds: int) -> str:
    """Render a countdown using its largest one or two non-zero units; seconds drop once hours appear."""
    if seconds <= 0:
        return "0s"
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m {secs}s" if secs > 0 else f"{minutes}m"
    return f"{secs}s"


class StatusMessageBuilder:
    """Operator-facing guidance for node onboarding and participant status."""

    def __init__(self, urgent_window_sec: int = 600, auto_test_threshold_sec: int = 3600) -> None:
        self.urgent_window_sec = urgent_window_sec
        self.auto_test_threshold_sec = auto_test_threshold_sec
        self.nodes_logger = get_logger("nodegate.status.nodes", LogSubsystem.nodes)
        self.participants_logger = get_logger("nodegate.status.participants", LogSubsystem.participants)

    def build_onboarding_message(
        self,
        state: OnboardingState,
        seconds_until_next_poc: int,
        failing_model: str = "",
    ) -> str:
        match state:
            case OnboardingState.TESTING:
                return "Testing MLnode configuration - model loading in progress"
            case OnboardingState.TEST_FAILED:
                if not failing_model:
                    return "MLnode test failed"
                return f"MLnode test failed: model '{failing_model}' could not be loaded"
            case OnboardingState.WAITING_FOR_POC:
                countdown = format_short_duration(seconds_until_next_poc)
                if seconds_until_next_poc <= self.urgent_window_sec:
                    return f"PoC starting soon (in {countdown}) - MLnode must be online now"
                return (
                    f"Waiting for next PoC cycle (starts in {countdown}) - you can safely turn off "
                    "the server and restart it 10 minutes before PoC"
                )
            case _:
                return ""

    def build_participant_message(self, state: ParticipantState) -> str:
        match state:
            case ParticipantState.ACTIVE_PARTICIPATING:
                return "Participant is in active set and participating"
            case ParticipantState.INACTIVE_WAITING:
                return "Participant not yet active - model assignment will occur after joining active set"
            case _:
                return ""

    def should_suppress_no_model_guidance(self, participant_active: bool) -> bool:
        return not participant_active

    def build_no_model_guidance(self, seconds_until_next_poc: int) -> str:
        if seconds_until_next_poc > self.auto_test_threshold_sec:
            return "MLnode will be tested automatically when there is more than 1 hour until next PoC"
        return ""

    def build_status(
        self,
        onboarding_state: OnboardingState,
        participant_state: ParticipantState,
        seconds_until_next_poc: int,
        failing_model: str = "",
        has_models: bool = True,
    ) -> NodeStatusReport:
        no_model_guidance = ""
        participant_active = participant_state == ParticipantState.ACTIVE_PARTICIPATING
        if not has_models and not self.should_suppress_no_model_guidance(participant_active):
            no_model_guidance = self.build_no_model_guidance(seconds_until_next_poc)
        return NodeStatusReport(
            onboarding_message=self.build_onboarding_message(onboarding_state, seconds_until_next_poc, failing_model),
            participant_message=self.build_participant_message(participant_state),
            no_model_guidance=no_model_guidance,
        )

    def log_onboarding_transition(self, prev: OnboardingState, next_state: OnboardingState) -> None:
        self.nodes_logger.info(
            "Onboarding state transition",
            extra={"prev": str(prev), "next": str(next_state)},
        )

    def log_testing(self, message: str) -> None:
        self.nodes_logger.info(message)

    def log_participant_status_change(self, prev: ParticipantState, next_state: ParticipantState) -> None:
        self.participants_logger.info(
            "Participant status change",
            extra={"prev": str(prev), "next": str(next_state)},
        )

    def log_timing_guidance(self, seconds_until_next_poc: int) -> None:
        self.nodes_logger.info(
            "Timing guidance",
            extra={"seconds_until_next_poc": seconds_until_next_poc},
        )
