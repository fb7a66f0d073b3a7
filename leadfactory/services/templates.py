DEFAULT_SEQUENCE = [
    {"delay_days": 0, "channel": "email", "template_key": "intro_1"},
    {"delay_days": 2, "channel": "email", "template_key": "followup_1"},
    {"delay_days": 5, "channel": "whatsapp", "template_key": "quick_ping"},
    {"delay_days": 10, "channel": "email", "template_key": "last_call"},
]

TEMPLATE_LIBRARY = {
    "intro_1": (
        "Hello {{name}},\n\n"
        "I looked at the online presence of {{business}} and noticed a few missed opportunities on Google Maps.\n\n"
        "I put together a quick audit. Are you the right person to talk to about it?"
    ),
    "followup_1": (
        "Hello {{name}},\n\n"
        "Following up on my previous message about your local visibility. Did you get a chance to take a look?"
    ),
    "quick_ping": "Hello {{name}}, this is about {{business}}. Do you have 5 minutes for a quick call?",
    "last_call": (
        "Hello {{name}},\n\n"
        "I'm closing your file for now. I'm still available if you want to improve customer acquisition later.\n\n"
        "Best regards."
    ),
}

MISSING_TEMPLATE = "(Template missing)"
