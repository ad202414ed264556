"""LLM agents used by email processing and learning."""

from aris.ai.agents.email_analyst import EmailAnalystAgent, ReplyDrafterAgent
from aris.ai.agents.pattern_analyst import PatternAnalystAgent

__all__ = ["EmailAnalystAgent", "PatternAnalystAgent", "ReplyDrafterAgent"]
