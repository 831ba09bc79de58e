from enum import StrEnum


class OnboardingState(StrEnum):
    WAITING_FOR_POC = "WAITING_FOR_POC"
    TESTING = "TESTING"
    TEST_FAILED = "TEST_FAILED"


class ParticipantState(StrEnum):
    INACTIVE_WAITING = "INACTIVE_WAITING"
    ACTIVE_PARTICIPATING = "ACTIVE_PARTICIPATING"


class MLNodeState(StrEnum):
    """State values understood by the node's own state endpoint."""

    WAITING_FOR_POC = "WAITING_FOR_POC"
    TEST_FAILED = "TEST_FAILED"


class TestStatus(StrEnum):
    __test__ = False

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class AdmissionStage(StrEnum):
    lookup = "lookup"
    setup = "setup"
    model_load = "model_load"
    health = "health"
    inference = "inference"
