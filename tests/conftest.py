"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.lessons.session import LessonSession
from src.lessons.tracker import ScoringPolicy


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (full lesson flows)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class RecordingRenderer:
    """Renderer that keeps every payload it is asked to show."""

    def __init__(self):
        self.modals: list[dict] = []
        self.challenges: list[dict] = []
        self.slides: list[dict] = []

    def show_modal(self, payload):
        self.modals.append(payload)

    def show_challenge(self, payload):
        self.challenges.append(payload)

    def append_slide(self, payload):
        self.slides.append(payload)

    @property
    def calls(self) -> int:
        return len(self.modals) + len(self.challenges) + len(self.slides)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def policy():
    """Default scoring constants, independent of the environment."""
    return ScoringPolicy()


@pytest.fixture
def session(renderer, policy):
    """A fresh lesson session for one student."""
    session = LessonSession("Test Student", renderer=renderer, policy=policy)
    yield session
    session.close()


@pytest.fixture
def banking_basics():
    """Lesson with three required actions, five slides and a timed hint."""
    return {
        "_id": "banking_basics",
        "lesson_title": "Banking Basics",
        "total_slides": 5,
        "required_actions": ["transfer_completed", "deposit_made", "bill_created"],
        "completion_conditions": [
            {
                "condition_type": "transfer_completed",
                "action_type": "praise_good_habit",
                "action_details": {"message": "Nice transfer!"},
            },
            {
                "condition_type": "deposit_made",
                "condition_value": {"amount": 500},
                "action_type": "send_message",
                "action_details": {"title": "Deposit", "message": "You deposited $500."},
            },
            {
                "condition_type": "bill_created",
                "action_type": "show_tip",
                "action_details": {"message": "Pay bills before their due date."},
            },
            {
                "condition_type": "elapsed_time",
                "condition_value": 300,
                "action_type": "suggest_action",
                "action_details": {"message": "Try making a transfer."},
            },
        ],
    }


@pytest.fixture
def slider_lesson():
    """Content-only lesson: no required actions."""
    return {
        "id": "reading_statements",
        "title": "Reading Statements",
        "total_slides": 3,
        "conditions": [],
    }


@pytest.fixture
def budget_lesson():
    """Three independent conditions, no required actions."""
    return {
        "id": "budget_101",
        "title": "Budgeting 101",
        "conditions": [
            {
                "condition_type": "budget_created",
                "action_type": "send_message",
                "action_details": {"message": "Budget created."},
            },
            {
                "condition_type": "goal_set",
                "action_type": "validate_smart_goal",
                "action_details": {"message": "Is your goal SMART?"},
            },
            {
                "condition_type": "savings_transfer",
                "condition_value": {"amount": {"op": ">=", "value": 100}},
                "action_type": "challenge_save_amount",
                "action_details": {"message": "Save $250 more.", "target_amount": 250},
            },
        ],
    }
