"""Shared test fixtures."""

import pytest
from helpers import FakeProvider, make_user

from mrw.models import User


@pytest.fixture
def fake() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def alice() -> User:
    return make_user(1, "alice")


@pytest.fixture
def bob() -> User:
    return make_user(2, "bob")


@pytest.fixture
def carol() -> User:
    return make_user(3, "carol")
