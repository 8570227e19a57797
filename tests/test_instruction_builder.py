import pytest

from prompt_enhancer.models.enhancement import EnhancementOptions, Focus, Tone
from prompt_enhancer.services.instruction_builder import BASE_INSTRUCTIONS, build_system_instructions


class TestInstructionBuilder:

    def test_no_options_gives_base_directive(self):
        assert build_system_instructions(EnhancementOptions()) == BASE_INSTRUCTIONS

    def test_base_directive_content(self):
        text = build_system_instructions(EnhancementOptions())
        assert "Maintain the original intent and purpose" in text
        assert "Improve clarity and specificity" in text
        assert "Remove ambiguity and redundancy" in text

    def test_all_options_in_fixed_order(self):
        options = EnhancementOptions(platform="Claude", tone=Tone.ACADEMIC, focus=Focus.STRUCTURE)
        text = build_system_instructions(options)

        assert text.endswith(
            "- Optimize specifically for Claude\n"
            "- Use a scholarly and precise tone\n"
            "- Focus on well-organized sections and formatting"
        )

    def test_tone_phrases(self):
        expected = {
            Tone.PROFESSIONAL: "formal and business-appropriate",
            Tone.CASUAL: "friendly and conversational",
            Tone.ACADEMIC: "scholarly and precise",
            Tone.CREATIVE: "imaginative and engaging",
        }
        for tone, phrase in expected.items():
            text = build_system_instructions(EnhancementOptions(tone=tone))
            assert text == f"{BASE_INSTRUCTIONS}\n- Use a {phrase} tone"

    def test_focus_phrases(self):
        expected = {
            Focus.CLARITY: "crystal-clear instructions and expectations",
            Focus.ENGAGEMENT: "compelling and attention-grabbing language",
            Focus.SPECIFICITY: "detailed requirements and constraints",
            Focus.STRUCTURE: "well-organized sections and formatting",
        }
        for focus, phrase in expected.items():
            text = build_system_instructions(EnhancementOptions(focus=focus))
            assert text == f"{BASE_INSTRUCTIONS}\n- Focus on {phrase}"

    def test_deterministic(self):
        options = EnhancementOptions(platform="ChatGPT", tone=Tone.CREATIVE)
        assert build_system_instructions(options) == build_system_instructions(
            EnhancementOptions(platform="ChatGPT", tone=Tone.CREATIVE)
        )


class TestEnhancementOptions:

    def test_from_empty(self):
        assert EnhancementOptions.from_dict(None) == EnhancementOptions()
        assert EnhancementOptions.from_dict({}) == EnhancementOptions()

    def test_from_dict_round_trip(self):
        options = EnhancementOptions.from_dict({"platform": "ChatGPT", "tone": "casual", "focus": "engagement"})

        assert options == EnhancementOptions(platform="ChatGPT", tone=Tone.CASUAL, focus=Focus.ENGAGEMENT)
        assert options.to_dict() == {"platform": "ChatGPT", "tone": "casual", "focus": "engagement"}

    def test_blank_platform_is_no_preference(self):
        assert EnhancementOptions.from_dict({"platform": "   "}).platform is None

    def test_unknown_tone_rejected(self):
        with pytest.raises(ValueError):
            EnhancementOptions.from_dict({"tone": "sarcastic"})
