"""
Built-in rule table.

Order is significant: rules are evaluated top to bottom and the first
full match wins, so narrow intents come before broad ones and
``fallback`` is always last.
"""

_END = r"[\s!.?,]*"

DEFAULT_RULES = [
    {
        "intent_id": "greeting_hi",
        "pattern": r"(hi|hello|hey|hiya|howdy|yo|greetings|hallo)( there)?" + _END,
        "responses": [
            "Hello! How can I help you today?",
            "Hi there! What can I do for you?",
            "Hey! Good to hear from you.",
        ],
        "priority": 90,
    },
    {
        "intent_id": "greeting_time_of_day",
        "pattern": r"good (morning|afternoon|evening|day)" + _END,
        "responses": [
            "Good day to you too! How can I help?",
            "And a good day to you! What's on your mind?",
        ],
        "priority": 85,
    },
    {
        "intent_id": "how_are_you",
        "pattern": r"(how are you|how're you|how is it going|how's it going|how do you do|what's up|sup)( doing| today)?" + _END,
        "responses": [
            "I'm doing well, thanks for asking!",
            "All systems running smoothly!",
            "Can't complain. What about you?",
        ],
        "priority": 70,
    },
    {
        "intent_id": "identity",
        "pattern": r"(who|what) are you" + _END + r"|what('s| is) your name" + _END,
        "responses": [
            "I'm Static, a small rule-based chatter bot.",
            "They call me Static. I answer from a fixed set of replies.",
        ],
        "priority": 60,
    },
    {
        "intent_id": "capabilities",
        "pattern": r"what can you do" + _END + r"|what do you do" + _END,
        "responses": [
            "I recognise a handful of phrases and answer with canned replies.",
            "Not much, honestly: greetings, small talk and polite goodbyes.",
        ],
        "priority": 60,
    },
    {
        "intent_id": "thanks",
        "pattern": r"(thank you|thanks|thx|ty|cheers|much appreciated)( (so|very) much)?" + _END,
        "responses": [
            "You're welcome!",
            "Happy to help!",
            "No problem at all!",
        ],
        "priority": 50,
    },
    {
        "intent_id": "farewell",
        "pattern": r"(bye|goodbye|good bye|see you|see ya|later|take care|good night)( later| soon)?" + _END,
        "responses": [
            "Goodbye! Have a great day!",
            "Take care!",
            "See you later!",
        ],
        "priority": 50,
    },
    {
        "intent_id": "affirm",
        "pattern": r"(yes|yeah|yep|yup|sure|ok|okay|alright)" + _END,
        "responses": [
            "Got it!",
            "Understood!",
            "Alright!",
        ],
        "priority": 20,
    },
    {
        "intent_id": "deny",
        "pattern": r"(no|nope|nah|not really)" + _END,
        "responses": [
            "Okay, no problem.",
            "Understood.",
            "Fair enough.",
        ],
        "priority": 20,
    },
    {
        "intent_id": "help",
        "pattern": r".*\b(help|support|assist)\b.*",
        "responses": [
            "I'm only a simple bot, but try saying hello or asking who I am.",
            "Help is limited here: I know greetings, thanks and goodbyes.",
        ],
        "priority": 40,
    },
    {
        "intent_id": "question",
        "pattern": r".*\?",
        "responses": [
            "That's a good question! I'm afraid I don't have an answer.",
            "Interesting question. I only know a few canned replies, though.",
            "Hmm, I can't answer that one.",
        ],
        "priority": 10,
    },
    {
        "intent_id": "fallback",
        "pattern": r".*",
        "responses": [
            "I'm not sure I follow. Could you rephrase that?",
            "Sorry, I didn't catch that.",
            "Interesting. Tell me more.",
        ],
        "priority": 0,
    },
]
