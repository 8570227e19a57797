from prompt_enhancer.models.enhancement import EnhancementOptions, Focus, Tone

BASE_INSTRUCTIONS = """You are an expert AI prompt engineer. Your task is to optimize prompts for maximum effectiveness.

OPTIMIZATION REQUIREMENTS:
- Maintain the original intent and purpose
- Improve clarity and specificity
- Add appropriate structure for better AI comprehension
- Include relevant context or constraints where helpful
- Ensure actionable outputs
- Remove ambiguity and redundancy"""

TONE_PHRASES = {
    Tone.PROFESSIONAL: "formal and business-appropriate",
    Tone.CASUAL: "friendly and conversational",
    Tone.ACADEMIC: "scholarly and precise",
    Tone.CREATIVE: "imaginative and engaging",
}

FOCUS_PHRASES = {
    Focus.CLARITY: "crystal-clear instructions and expectations",
    Focus.ENGAGEMENT: "compelling and attention-grabbing language",
    Focus.SPECIFICITY: "detailed requirements and constraints",
    Focus.STRUCTURE: "well-organized sections and formatting",
}


def build_system_instructions(options: EnhancementOptions) -> str:
    """Compose the system instructions for an enhancement call. Same options, same text."""
    lines = [BASE_INSTRUCTIONS]
    if options.platform:
        lines.append(f"- Optimize specifically for {options.platform}")
    if options.tone:
        lines.append(f"- Use a {TONE_PHRASES[options.tone]} tone")
    if options.focus:
        lines.append(f"- Focus on {FOCUS_PHRASES[options.focus]}")
    return "\n".join(lines)
