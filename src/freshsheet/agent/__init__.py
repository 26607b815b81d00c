from freshsheet.agent.runner import ConversationLoop, LoopResult, LoopState
from freshsheet.agent.registry import TOOL_REGISTRY, get_tool_manifest

# Importing the tool modules registers their tools
from freshsheet.agent import tools, org_tools  # noqa: F401

__all__ = [
    "ConversationLoop",
    "LoopResult",
    "LoopState",
    "TOOL_REGISTRY",
    "get_tool_manifest",
]
