"""Shared fixtures for GroupSplit tests."""

import pytest

from groupsplit.db import Database
from groupsplit.models import Group, Participant
from groupsplit.service import ExpenseService


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def members(db):
    """Register three participants: alice, bob and carol."""
    return [
        db.add_participant(Participant(name=name, email=f"{name}@example.com"))
        for name in ("alice", "bob", "carol")
    ]


@pytest.fixture
def outsider(db):
    """Register a participant who belongs to no group."""
    return db.add_participant(Participant(name="dave", email="dave@example.com"))


@pytest.fixture
def group(db, members):
    """Create a group containing all three members."""
    return db.create_group(
        Group(name="Ski trip", member_ids={member.id for member in members})
    )


@pytest.fixture
def service(db):
    """Create an ExpenseService backed by the temporary database."""
    return ExpenseService.from_database(db)
