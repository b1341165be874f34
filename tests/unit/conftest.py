"""Pytest configuration and fixtures for unit tests."""

import pytest

from src.modules.tasks.board import Board, BoardTransitionController
from src.modules.tasks.reconciler import CompletionReconciler
from src.modules.tasks.service import TaskService
from tests.unit.mocks import FakeClock, InMemoryTaskStore


@pytest.fixture
def store():
    """Provides a fresh InMemoryTaskStore for each test."""
    return InMemoryTaskStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def seeded_store(store):
    """Store holding task 1000 (subtasks 1001, 1002) and task 1003 without subtasks."""
    project = store.seed_task("Client Onboarding Project", type="project", priority="High")
    store.seed_subtask(project["id"], "Kickoff call")
    store.seed_subtask(project["id"], "Send contract")
    store.seed_task("Write monthly report", type="custom", priority="Low")
    return store


@pytest.fixture
def reconciler(store):
    return CompletionReconciler(store)


@pytest.fixture
def service(store, clock):
    return TaskService(store, clock=clock)


@pytest.fixture
def board():
    return Board()


@pytest.fixture
def controller(board, reconciler):
    return BoardTransitionController(board, reconciler)
