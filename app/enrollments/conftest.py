"""
Pytest fixtures for enrollment tests.

Shared user and API client fixtures live in the project conftest.
"""

import pytest

from catalog.tests.factories import CourseFactory


@pytest.fixture
def stripe_course(db):
    """Create a published paid course."""
    return CourseFactory()


@pytest.fixture
def free_course(db):
    """Create a published course priced at zero."""
    return CourseFactory(free=True, title="Free Sketching Basics")
