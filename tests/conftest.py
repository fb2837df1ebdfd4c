"""Fixtures shared by the unit and integration suites."""

from __future__ import annotations

import pytest

from helpers import FakeMailer, FakeStore, make_class, make_voucher


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(classes=[make_class()], vouchers=[make_voucher()])


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()
