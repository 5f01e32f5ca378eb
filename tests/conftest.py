"""Shared fixtures for dialogue prompts tests."""

import logging

import pytest

from dialogue_prompts.host import Actor, HostContext, Item, RollResult
from dialogue_prompts.logger import ROOT_LOGGER


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by CLI runs so later records do not hit closed streams"""
    yield
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


class ScriptedRoller:
    """Randomizer that returns preset totals in order and records every call."""

    def __init__(self, totals):
        self.totals = list(totals)
        self.calls = []

    def roll(self, formula, flavor=""):
        self.calls.append((formula, flavor))
        if not self.totals:
            raise AssertionError(f"Unexpected roll: {formula}")
        return RollResult(total=self.totals.pop(0), formula=formula)


@pytest.fixture
def roller():
    """Factory: roller(18, 5) rolls 18 then 5."""
    return lambda *totals: ScriptedRoller(totals)


@pytest.fixture
def actor():
    return Actor.from_dict({
        "name": "Vex",
        "race": "High Elf",
        "abilities": {"str": {"value": 14, "mod": 2}, "dex": {"value": 10}},
        "skills": {"prc": {"total": 2, "proficient": 1}, "ste": {"total": 5, "proficient": 0}},
        "tools": {"thief": {"proficient": 1}},
        "languages": ["common", "elvish"],
        "customLanguages": "Thieves' Cant; Draconic",
        "items": [{"name": "Rusty Key", "type": "loot"}, {"name": "Fire Bolt", "type": "spell"}],
        "flags": {"world": {"met_tom": True, "gold": 5}},
    })


@pytest.fixture
def npc():
    return Actor(
        name="Tom",
        actor_id="tom",
        actor_type="npc",
        items=[Item(name="Silver Ring", type="loot"), Item(name="Map", type="loot")],
    )


@pytest.fixture
def context(actor, npc):
    return HostContext(actor=actor, npc=npc)
