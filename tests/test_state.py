from types import SimpleNamespace

from adkflow.agent import Agent
from adkflow.state import create_empty_state, find_state_params


def test_find_state_params_extracts_names_in_order():
    assert find_state_params("Hello {name}, you are {role}.") == ["name", "role"]


def test_find_state_params_deduplicates():
    assert find_state_params("{topic} and again {topic}") == ["topic"]


def test_find_state_params_ignores_non_word_placeholders():
    assert find_state_params("{not-valid} {also valid?} {}") == []


def test_find_state_params_empty_text():
    assert find_state_params("") == []


def test_create_empty_state_collects_from_sub_agents():
    child = Agent(name="child", instruction="Write about {topic}")
    root = Agent(name="root", instruction="You are {persona}", sub_agents=[child])

    state = create_empty_state(root)

    assert state == {"persona": "", "topic": ""}


def test_create_empty_state_skips_initialized_keys():
    agent = Agent(name="writer", instruction="{persona} writes {topic}")

    state = create_empty_state(agent, {"persona": "poet"})

    assert state == {"topic": ""}


def test_create_empty_state_reads_system_instructions():
    llm_agent = SimpleNamespace(system_instructions="Use {style}")
    assert create_empty_state(llm_agent) == {"style": ""}


def test_create_empty_state_agent_without_instructions():
    assert create_empty_state(SimpleNamespace()) == {}