"""Model-input assembly for the three recommendation modes.

Modes are mutually exclusive:
    no_match: nothing retrieved; the fixed no-match guidance block is injected.
    ready:    matches and clear intent; the full candidate context is injected.
    gated:    matches but unclear intent; candidates are withheld and the model
              is told to ask clarifying questions first.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Sequence

from .catalog import CatalogDocument
from .models import Turn
from .readiness import Readiness
from .retrieval import ConversationContext

HISTORY_WINDOW = 10


def load_prompt(prompt_path: Path) -> str:
    """Read a UTF-8 prompt file, dropping a leading BOM and surrounding whitespace."""
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        text = prompt_path.read_bytes().decode("utf-8", errors="ignore")
    return text.lstrip("\ufeff").strip()


class PromptMode(str, Enum):
    NO_MATCH = "no_match"
    READY = "ready"
    GATED = "gated"


@dataclass(frozen=True)
class AssembledPrompt:
    mode: PromptMode
    messages: List[Dict[str, str]]


def select_mode(context: ConversationContext, readiness: Readiness) -> PromptMode:
    if not context.has_any_match:
        return PromptMode.NO_MATCH
    if readiness.is_ready:
        return PromptMode.READY
    return PromptMode.GATED


def _format_amount(amount: float) -> str:
    return str(int(amount)) if amount == int(amount) else f"{amount:.2f}"


def render_candidate(index: int, document: CatalogDocument) -> str:
    lines = [
        f"{index}. **{document.title}**",
        f"   - **Department/Category**: {document.category}",
        f"   - **Industry**: {document.industry}",
        f"   - **Company**: {document.company.name or 'Unknown'}",
        f"   - **Description**: {document.short_description}",
    ]
    if document.pricing.model:
        pricing = f"   - **Pricing**: {document.pricing.model}"
        if document.pricing.amount:
            pricing += f" - ${_format_amount(document.pricing.amount)}"
        lines.append(pricing)
    if document.use_cases:
        lines.append(f"   - **Use Cases**: {', '.join(document.use_cases)}")
    return "\n".join(lines)


def format_context(context: ConversationContext) -> str:
    """Purpose: Render ranked candidates and related vendors as a prompt block.
    Inputs/Outputs: Input is a ConversationContext; output is markdown text.
    Side Effects / State: None.
    Failure Modes: Empty context yields an empty string.
    If Removed: Ready-mode prompts carry no catalog context.
    Testing Notes: Pricing amount appears only when present; use cases only when listed.
    """
    sections: List[str] = []
    if context.candidates:
        rendered = [render_candidate(i, doc) for i, doc in enumerate(context.candidates, start=1)]
        sections.append("**Available AI Solutions in Our Catalog:**\n" + "\n\n".join(rendered))
    if context.related_companies:
        companies = [
            f"- **{company.name}**" + (f" | Website: {company.website}" if company.website else "")
            for company in context.related_companies
        ]
        sections.append("**Related Companies:**\n" + "\n".join(companies))
    return "\n\n".join(sections)


class PromptAssembler:
    """Build provider messages from policy, retrieval context and history."""

    def __init__(self, prompts_dir: Path, history_window: int = HISTORY_WINDOW) -> None:
        """Purpose: Load the fixed prompt blocks used by every request.
        Inputs/Outputs: Input is the prompts directory and history window; no return.
        Side Effects / State: Reads prompt files once at construction.
        Dependencies: load_prompt.
        Failure Modes: Missing prompt files raise FileNotFoundError at startup.
        """
        self._history_window = history_window
        self.system_policy = load_prompt(prompts_dir / "system_policy.txt")
        self.no_match_block = load_prompt(prompts_dir / "no_match.txt")
        self.gated_block = load_prompt(prompts_dir / "gated.txt")
        self.internet_policy = load_prompt(prompts_dir / "internet_search.txt")

    def mode_block(self, mode: PromptMode, context: ConversationContext) -> str:
        if mode is PromptMode.NO_MATCH:
            return self.no_match_block
        if mode is PromptMode.READY:
            return format_context(context)
        return self.gated_block

    def build(
        self,
        policy_text: str,
        context: ConversationContext,
        readiness: Readiness,
        history: Sequence[Turn],
        user_message: str,
    ) -> AssembledPrompt:
        mode = select_mode(context, readiness)
        system_text = f"{policy_text.rstrip()}\n\n{self.mode_block(mode, context)}"
        return AssembledPrompt(mode=mode, messages=self.compose(system_text, history, user_message))

    def build_internet(self, history: Sequence[Turn], user_message: str) -> List[Dict[str, str]]:
        return self.compose(self.internet_policy, history, user_message)

    def compose(self, system_text: str, history: Sequence[Turn], user_message: str) -> List[Dict[str, str]]:
        # System first, then the recent history window, then the new message.
        messages = [{"role": "system", "content": system_text}]
        recent = list(history)[-self._history_window :] if self._history_window > 0 else []
        messages.extend({"role": turn.role, "content": turn.content} for turn in recent)
        messages.append({"role": "user", "content": user_message})
        return messages
