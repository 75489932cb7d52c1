"""Compose the single message sent to the backend."""

from cmdk.context.models import ContextDocument
from cmdk.session.models import Session, format_turns

SYSTEM_INSTRUCTIONS = """You are a terminal command assistant. Output ONLY the exact command to run.

CRITICAL RULES:
- Output ONLY the command itself - no shell prompts, no $, no explanation
- No markdown code blocks - just the raw command
- No "Here's the command:" or similar prefixes
- Single command only (use && or ; for multiple)
- When the user is in an editor or REPL and keystrokes are needed, write them
  as <Esc>, <Enter>, <Tab>, <BS>, <Up>, <C-x> or <M-x>
- If asked for explanation, then explain - otherwise just the command"""


def build(
    system_instructions: str,
    context_document: ContextDocument,
    session: Session,
    user_text: str,
) -> str:
    parts = [
        system_instructions.rstrip("\n"),
        "",
        "Context from user's terminal:",
        context_document.render().rstrip("\n"),
        "",
    ]
    if not session.is_empty:
        parts.append("## Previous Conversation:")
        parts.append(format_turns(session.turns))
    parts.append(f"## User: {user_text}")
    return "\n".join(parts) + "\n"
