"""Shared BDD fixtures and step definitions."""

import pytest
from pytest_bdd import parsers, then


@pytest.fixture()
def error():
    """Container for a rejected change captured by a When step."""
    return {"exc": None}


@then(parsers.cfparse("the {subject} change is rejected"))
def change_is_rejected(error, subject):
    assert error["exc"] is not None, f"expected the {subject} change to be rejected"


@then("the transition is rejected")
def transition_is_rejected(error):
    from bakery.shared.errors import IllegalTransitionError

    assert isinstance(error["exc"], IllegalTransitionError)
