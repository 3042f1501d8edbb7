"""Unit tests for persona text."""

import pytest

from tappi.config.persona import TAPPI, ordinal


@pytest.mark.parametrize(
    "n,expected",
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"),
     (13, "13th"), (21, "21st"), (22, "22nd"), (101, "101st"), (111, "111th")],
)
def test_ordinal(n, expected):
    assert ordinal(n) == expected


class TestSystemInstruction:
    """Tests for Persona.system_instruction."""

    def test_first_attempt_is_base(self):
        assert TAPPI.system_instruction(0) == TAPPI.base_instruction

    def test_regeneration_mentions_attempt(self):
        instruction = TAPPI.system_instruction(2)

        assert instruction.startswith(TAPPI.base_instruction)
        assert "REGENERATE" in instruction
        assert "2nd time" in instruction

    def test_instructions_differ_per_attempt(self):
        """Test that every attempt count gets its own instruction."""
        instructions = [TAPPI.system_instruction(n) for n in range(8)]

        assert len(set(instructions)) == len(instructions)

    def test_escalation_steps_accumulate(self):
        first, second = TAPPI.escalation_steps[:2]

        assert first in TAPPI.system_instruction(1)
        assert second not in TAPPI.system_instruction(1)
        assert second in TAPPI.system_instruction(2)

    def test_negative_attempt_rejected(self):
        with pytest.raises(ValueError):
            TAPPI.system_instruction(-1)


def test_speech_prompt_carries_tone():
    assert TAPPI.speech_prompt("Hello") == f"{TAPPI.speech_tone}: Hello"


def test_canned_replies():
    assert TAPPI.error_apology == "Ugh, Kunal, something went wrong. Try again, dear."
    assert TAPPI.regeneration_apology == "Kunal, stop it! You've broken me with your constant nagging."
