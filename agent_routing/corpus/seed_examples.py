"""
Starter labeled examples for an empty corpus. Stored text-only; embeddings are
back-filled by FeedbackLoop.seed_example_embeddings.
"""

from typing import Dict, List, Tuple

from agent_routing.routing.types import AgentRole, require_all_roles

STARTER_EXAMPLES: Dict[AgentRole, Tuple[str, ...]] = {
    AgentRole.ORCHESTRATOR: (
        "plan my week and send the summary to my team",
        "help me with a few different things",
        "what can you do",
        "I need help but I'm not sure who to ask",
    ),
    AgentRole.CODER: (
        "why is my python script throwing a KeyError",
        "review the changes in my latest pull request",
        "write a SQL query that finds duplicate emails",
        "open an issue on the repo about the failing build",
        "refactor this function to be async",
    ),
    AgentRole.RESEARCHER: (
        "what happened in the news today",
        "find recent papers on retrieval augmented generation",
        "who won the world cup in 2018",
        "look up the documentation for the fetch API",
        "compare the population of Canada and Australia",
    ),
    AgentRole.SECRETARY: (
        "what's on my calendar tomorrow",
        "draft a reply to the last email from Sarah",
        "schedule a meeting with the design team on Friday",
        "find the budget spreadsheet in my drive",
        "remind me to call the dentist at 3pm",
    ),
    AgentRole.PERSONALITY: (
        "tell me a joke",
        "play something relaxing on spotify",
        "write a short poem about autumn",
        "how's your day going",
        "skip this song",
    ),
    AgentRole.HOME: (
        "turn off the living room lights",
        "set the thermostat to 70 degrees",
        "lock the front door",
        "how did I sleep last night",
        "activate movie night scene",
    ),
    AgentRole.FINANCE: (
        "how much did I spend on groceries this month",
        "can I afford a new laptop",
        "what bills are due next week",
        "show my net worth trend",
        "which subscriptions should I cancel",
    ),
    AgentRole.IMAGEGEN: (
        "draw a cat wearing a spacesuit",
        "make a pie chart of my expenses by category",
        "create an architecture diagram for a web app",
        "generate a logo for my coffee shop",
        "describe what's in this photo",
    ),
}

require_all_roles(STARTER_EXAMPLES, "STARTER_EXAMPLES")


def starter_example_rows() -> List[Dict[str, str]]:
    """Rows ready for RoutingStore.publish_version."""
    return [
        {"text": text, "label": role.value}
        for role, texts in STARTER_EXAMPLES.items()
        for text in texts
    ]
