"""
Agent catalogue: display names, explicit-mention aliases, keyword tables, and
the descriptions handed to the classifier oracle.

Every table is keyed by AgentRole and checked at import time, so a new role
cannot be added without deciding how each tier treats it.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from agent_routing.routing.types import AgentRole, require_all_roles


@dataclass(frozen=True)
class AgentProfile:
    role: AgentRole
    display_name: str
    description: str
    # Regex fragments accepted after "ask/have/let/get (the)"
    aliases: Tuple[str, ...]
    # Literal handles accepted after "@"
    handles: Tuple[str, ...]


@dataclass(frozen=True)
class KeywordTable:
    phrases: Tuple[str, ...]
    words: Tuple[str, ...]


AGENT_PROFILES: Dict[AgentRole, AgentProfile] = {
    AgentRole.ORCHESTRATOR: AgentProfile(
        role=AgentRole.ORCHESTRATOR,
        display_name="Q8 Orchestrator",
        description="General coordination, complex multi-step tasks, unclear requests",
        aliases=("orchestrator",),
        handles=("orchestrator",),
    ),
    AgentRole.CODER: AgentProfile(
        role=AgentRole.CODER,
        display_name="DevBot",
        description="Software development, debugging, GitHub operations, code review, SQL/database",
        aliases=("coder", r"dev(?:bot)?", "developer"),
        handles=("coder", "devbot"),
    ),
    AgentRole.RESEARCHER: AgentProfile(
        role=AgentRole.RESEARCHER,
        display_name="Research Agent",
        description="Real-time web search, fact verification, news, documentation lookup",
        aliases=("researcher", r"research(?:bot)?"),
        handles=("researcher",),
    ),
    AgentRole.SECRETARY: AgentProfile(
        role=AgentRole.SECRETARY,
        display_name="Secretary",
        description="Email, calendar, Google Drive, meeting coordination, YouTube",
        aliases=("secretary", "secretarybot"),
        handles=("secretary",),
    ),
    AgentRole.PERSONALITY: AgentProfile(
        role=AgentRole.PERSONALITY,
        display_name="Q8",
        description="General chat, creative writing, music/Spotify control, casual conversation",
        aliases=("personality", "q8"),
        handles=("personality", "q8"),
    ),
    AgentRole.HOME: AgentProfile(
        role=AgentRole.HOME,
        display_name="HomeBot",
        description="Smart home control (lights, thermostat, locks, scenes, devices) and sleep data",
        aliases=(r"home(?:bot)?", r"smart\s*home"),
        handles=("home",),
    ),
    AgentRole.FINANCE: AgentProfile(
        role=AgentRole.FINANCE,
        display_name="Finance Advisor",
        description="Personal finance, budgeting, spending analysis, bill tracking, investments",
        aliases=(r"finance(?:\s*(?:bot|advisor))?",),
        handles=("finance",),
    ),
    AgentRole.IMAGEGEN: AgentProfile(
        role=AgentRole.IMAGEGEN,
        display_name="ImageGen",
        description="Image generation, diagram creation, charts, image analysis",
        aliases=("imagegen", r"image\s*gen(?:erator)?"),
        handles=("imagegen",),
    ),
}


# Multi-word phrases are scored above single words to reward specificity.
KEYWORD_TABLES: Dict[AgentRole, KeywordTable] = {
    AgentRole.ORCHESTRATOR: KeywordTable(phrases=(), words=()),
    AgentRole.CODER: KeywordTable(
        phrases=(
            "code review", "pull request", "bug fix", "debug this", "fix the bug",
            "implement feature", "write code", "git commit", "git push",
            "create branch", "merge request", "code change", "review this code",
            "review my code", "this code",
        ),
        words=(
            "code", "coding", "debug", "debugging", "github", "pr", "repo", "repository",
            "bug", "bugs", "error", "exception", "function", "class", "sql", "database",
            "api", "endpoint", "commit", "merge", "branch", "implement", "typescript",
            "javascript", "python", "refactor", "review",
        ),
    ),
    AgentRole.RESEARCHER: KeywordTable(
        phrases=(
            "search for", "find out", "look up", "research about", "tell me about",
            "what is", "how does", "latest news", "current events", "the latest",
            "search the",
        ),
        words=(
            "search", "find", "research", "news", "latest", "current", "article",
            "source", "reference", "information", "wikipedia", "define", "compare",
            "explain", "papers",
        ),
    ),
    AgentRole.SECRETARY: KeywordTable(
        phrases=(
            "schedule meeting", "send email", "check calendar", "book appointment",
            "create event", "cancel meeting", "email draft", "google drive",
            "youtube video", "search youtube", "send an email", "schedule a meeting",
        ),
        words=(
            "calendar", "schedule", "email", "gmail", "meeting", "appointment", "remind",
            "reschedule", "task", "event", "invite", "agenda", "availability",
            "youtube", "video",
        ),
    ),
    AgentRole.PERSONALITY: KeywordTable(
        phrases=(
            "play music", "play song", "now playing", "what is playing",
            "next song", "previous song", "turn up", "turn down", "add to queue",
            "how are you", "tell me a joke", "chat with me", "play some music",
            "some music", "a joke", "funny joke",
        ),
        words=(
            "music", "song", "playlist", "album", "artist", "spotify", "queue",
            "volume", "skip", "pause", "playing", "track", "listen", "hello", "hi",
            "hey", "thanks", "joke", "funny", "story", "chat", "talk", "opinion",
        ),
    ),
    AgentRole.HOME: KeywordTable(
        phrases=(
            "turn on", "turn off", "set temperature", "dim lights", "smart home",
            "activate scene", "lock door", "unlock door", "adjust thermostat",
            "the lights", "living room", "how did i sleep", "sleep score",
            "readiness score", "oura ring", "sleep last night", "sleep quality",
        ),
        words=(
            "light", "lights", "lamp", "thermostat", "temperature", "lock", "door",
            "blinds", "fan", "hvac", "scene", "automation", "device", "sensor",
            "climate", "brightness", "dim", "switch", "degrees", "sleep", "oura",
            "readiness", "hrv",
        ),
    ),
    AgentRole.FINANCE: KeywordTable(
        phrases=(
            "check balance", "spending summary", "budget analysis", "net worth",
            "can i afford", "upcoming bills", "subscription audit", "expense report",
            "my budget", "my spending", "monthly budget", "how much",
        ),
        words=(
            "money", "finance", "budget", "spending", "expense", "expenses", "income",
            "save", "savings", "invest", "investment", "stock", "portfolio", "balance",
            "transaction", "bill", "bills", "payment", "subscription", "afford", "cost",
            "price", "bank", "credit", "debt", "loan", "wealth",
        ),
    ),
    AgentRole.IMAGEGEN: KeywordTable(
        phrases=(
            "generate image", "create image", "make image", "draw me", "create picture",
            "generate picture", "create diagram", "make diagram", "draw diagram",
            "create chart", "pie chart", "bar chart", "analyze image", "describe image",
            "generate an image", "create a diagram", "make a pie chart",
        ),
        words=(
            "image", "picture", "photo", "visual", "graphic", "artwork", "drawing",
            "visualize", "illustration", "infographic", "mockup", "sketch", "render",
            "diagram", "graph", "chart", "flowchart",
        ),
    ),
}


require_all_roles(AGENT_PROFILES, "AGENT_PROFILES")
require_all_roles(KEYWORD_TABLES, "KEYWORD_TABLES")


def get_display_name(role: AgentRole) -> str:
    return AGENT_PROFILES[role].display_name
