import logging
from pathlib import Path

# assumes:
# src/
# └ ledger_agent
#   ├ __init__.py - (this file)
#   └ VERSION
with open(Path(__file__).parent / "VERSION", "r") as f:
    __version__ = f.readline().strip()

# add nullhandler to prevent a default configuration being used if the calling application doesn't set one
logging.getLogger("ledger_agent").addHandler(logging.NullHandler())

from .config import ModelSettings, get_settings  # NOQA: E402
from .core import Agent, CancellationToken, Toolbox, tool  # NOQA: E402
from .types_ import AgentResponse, BookInfo, ConversationContext  # NOQA: E402

__all__ = [
    "__version__",
    "Agent",
    "AgentResponse",
    "BookInfo",
    "CancellationToken",
    "ConversationContext",
    "ModelSettings",
    "Toolbox",
    "get_settings",
    "tool",
]
