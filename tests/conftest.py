"""
conftest.py - Shared pytest fixtures for course ledger tests

Provides common fixtures used across unit, functional and conformance tests:
- A fresh deployment where only the owner holds tokens
- A funded deployment: students hold 1000 YDT each
- A marketplace with one listed course
- A small-supply deployment for exact integer checks
"""

import pytest

from course_ledger import Deployment, MarketplaceConfig, deploy_marketplace, WEI

from tests.accounts import (
    OWNER, INSTRUCTOR, STUDENTS, START_TIME, STUDENT_FUNDING, COURSE_CID,
)


# =============================================================================
# DEPLOYMENTS
# =============================================================================

@pytest.fixture
def empty_deployment() -> Deployment:
    """Deployment where only OWNER holds tokens."""
    return deploy_marketplace(OWNER, initial_time=START_TIME, verbose=False)


@pytest.fixture
def deployment(empty_deployment) -> Deployment:
    """Deployment with every student holding STUDENT_FUNDING tokens."""
    for student in STUDENTS:
        empty_deployment.token.transfer(OWNER, student, STUDENT_FUNDING)
    return empty_deployment


@pytest.fixture
def market(deployment):
    return deployment.marketplace


@pytest.fixture
def token(deployment):
    return deployment.token


@pytest.fixture
def course_id(market) -> int:
    """One active course by INSTRUCTOR priced at 100 YDT."""
    return market.create_course(INSTRUCTOR, COURSE_CID, 100 * WEI)


@pytest.fixture
def small_deployment() -> Deployment:
    """Deployment with a 10,000-unit supply; students hold 1000 units each."""
    config = MarketplaceConfig(initial_supply=10_000)
    d = deploy_marketplace(OWNER, config=config, initial_time=START_TIME, verbose=False)
    for student in STUDENTS:
        d.token.transfer(OWNER, student, 1000)
    return d
