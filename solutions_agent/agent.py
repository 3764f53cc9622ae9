"""Solutions Hub conversational recommendation engine.

Role:
    Owns the per-message flow that turns a free-text message into a gated,
    catalog-grounded reply, plus the explicit internet-search fallback and the
    session history surface used by the HTTP layer.

Pipeline data contract (TurnContext fields passed across steps):
    - bag, intent: keyword signals and domain/sub-domain flags for the message.
    - raw_candidates, conversation: retrieved documents and the ranked context.
    - readiness: whether setting and use case are both known.
    - prompt: the assembled provider messages and the selected mode.
    - model_text, result: provider reply and the formatted ChatResult.

Step contracts:
    extract -> retrieve -> score -> gate -> assemble -> invoke -> append_history -> format
    The history append runs only after the provider call returns, so a failed or
    cancelled call leaves the session untouched.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, TypeVar, Union

from .catalog import CatalogDocument, CatalogStore, build_catalog_store
from .config import Settings
from .errors import GenerationError
from .formatter import ResponseFormatter
from .gemini_client import CompletionClient, GeminiClient
from .keywords import KeywordBag, extract
from .models import ChatFailure, ChatResult, ClearResponse, InternetSearchResult, StatsResponse, Turn
from .pipeline import Pipeline, PipelineStep
from .prompt_builder import AssembledPrompt, PromptAssembler
from .readiness import KeywordReadinessGate, Readiness, ReadinessPolicy
from .retrieval import CandidateRetriever, ConversationContext, SearchIntent, detect_intent
from .scoring import RelevanceScorer
from .session_store import SessionStore

logger = logging.getLogger("solutions_hub.agent")

GENERIC_ERROR = "Sorry, I encountered an error processing your request. Please try again."
INTERNET_SEARCH_ERROR = "Sorry, I encountered an error while searching the internet. Please try again."

T = TypeVar("T")


@dataclass
class TurnContext:
    """Mutable context passed through each pipeline step."""
    session_id: str
    user_message: str
    history: List[Turn]
    bag: KeywordBag = field(default_factory=KeywordBag)
    intent: SearchIntent = field(default_factory=SearchIntent)
    raw_candidates: List[CatalogDocument] = field(default_factory=list)
    conversation: ConversationContext = field(default_factory=ConversationContext)
    readiness: Optional[Readiness] = None
    prompt: Optional[AssembledPrompt] = None
    model_text: str = ""
    result: Optional[ChatResult] = None


def _require(value: Optional[T], name: str) -> T:
    # A step read a field that an earlier step should have set.
    if value is None:
        raise RuntimeError(f"Pipeline context field '{name}' is not set")
    return value


class SolutionsAgent:
    def __init__(
        self,
        completion: CompletionClient,
        retriever: CandidateRetriever,
        sessions: SessionStore,
        assembler: PromptAssembler,
        readiness_policy: Optional[ReadinessPolicy] = None,
        scorer: Optional[RelevanceScorer] = None,
        formatter: Optional[ResponseFormatter] = None,
        max_output_tokens: Optional[int] = None,
        internet_max_output_tokens: Optional[int] = None,
    ) -> None:
        """Purpose: Wire the engine collaborators and build the step pipeline.
        Inputs/Outputs: Inputs are the completion client, retriever, session store,
            prompt assembler and optional policy/scorer/formatter/token caps.
        Side Effects / State: Constructs a Pipeline with ordered steps.
        Failure Modes: None at init; runtime errors surface from the steps.
        If Removed: Nothing wires retrieval, gating and the provider together.
        Testing Notes: Instantiate with a fake completion client and a JSON store.
        """
        self._completion = completion
        self._retriever = retriever
        self._sessions = sessions
        self._assembler = assembler
        self._readiness = readiness_policy or KeywordReadinessGate()
        self._scorer = scorer or RelevanceScorer()
        self._formatter = formatter or ResponseFormatter()
        self._max_output_tokens = max_output_tokens
        self._internet_max_output_tokens = internet_max_output_tokens
        self._pipeline = Pipeline(
            steps=[
                PipelineStep("extract", self._step_extract),
                PipelineStep("retrieve", self._step_retrieve),
                PipelineStep("score", self._step_score),
                PipelineStep("gate", self._step_gate),
                PipelineStep("assemble", self._step_assemble),
                PipelineStep("invoke", self._step_invoke),
                PipelineStep("append_history", self._step_append_history),
                PipelineStep("format", self._step_format),
            ]
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        completion: Optional[CompletionClient] = None,
        store: Optional[CatalogStore] = None,
    ) -> "SolutionsAgent":
        return cls(
            completion=completion or GeminiClient(settings),
            retriever=CandidateRetriever(store or build_catalog_store(settings)),
            sessions=SessionStore(
                max_turns=settings.max_turns,
                max_sessions=settings.max_sessions,
                ttl_seconds=settings.session_ttl_seconds,
            ),
            assembler=PromptAssembler(settings.prompts_dir, history_window=settings.history_window),
            readiness_policy=KeywordReadinessGate(window=settings.readiness_window),
            max_output_tokens=settings.max_output_tokens,
            internet_max_output_tokens=settings.internet_max_output_tokens,
        )

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def process_message(self, message: str, session_id: Optional[str] = None) -> Union[ChatResult, ChatFailure]:
        """Purpose: Run the full pipeline for one user message.
        Inputs/Outputs: Inputs are the message and an optional session id; output is
            a ChatResult, or a ChatFailure carrying the (possibly new) session id.
        Side Effects / State: Appends the user/assistant pair to the session on success.
        Dependencies: Pipeline steps, the completion client and the session store.
        Failure Modes: ConfigurationError propagates before any work. GenerationError
            becomes a generic ChatFailure; history is left unchanged.
        If Removed: The chat route has no engine entry point.
        Testing Notes: Use a failing fake client and assert history stays empty.
        """
        session_id = session_id or uuid.uuid4().hex
        self._completion.ensure_configured()
        context = TurnContext(
            session_id=session_id,
            user_message=message,
            history=self._sessions.get(session_id),
        )
        logger.info("session=%s step=receive history=%d", session_id, len(context.history))
        logger.debug("session=%s message=%s", session_id, message)
        try:
            await self._pipeline.run(context)
        except GenerationError:
            logger.warning("session=%s status=failure reason=generation_error", session_id)
            return ChatFailure(error=GENERIC_ERROR, session_id=session_id)
        return _require(context.result, "result")

    async def handle_internet_search_request(
        self, message: str, session_id: Optional[str] = None
    ) -> Union[InternetSearchResult, ChatFailure]:
        """Purpose: Answer with general, non-catalog recommendations on explicit opt-in.
        Inputs/Outputs: Inputs are the message and session id; output is an
            InternetSearchResult or a ChatFailure.
        Side Effects / State: Appends the exchange to the same session on success.
        Failure Modes: ConfigurationError propagates; GenerationError becomes ChatFailure.
        If Removed: Users with no catalog match have no broader fallback.
        """
        session_id = session_id or uuid.uuid4().hex
        self._completion.ensure_configured()
        history = self._sessions.get(session_id)
        messages = self._assembler.build_internet(history, message)
        logger.info("session=%s step=internet_search history=%d", session_id, len(history))
        try:
            response = await self._completion.complete(
                messages, max_output_tokens=self._internet_max_output_tokens
            )
        except GenerationError:
            logger.warning("session=%s status=failure reason=generation_error flow=internet", session_id)
            return ChatFailure(error=INTERNET_SEARCH_ERROR, session_id=session_id)
        self._append_exchange(session_id, message, response)
        return InternetSearchResult(response=response, session_id=session_id)

    def get_history(self, session_id: str) -> List[Turn]:
        return self._sessions.get(session_id)

    def clear_history(self, session_id: str) -> ClearResponse:
        self._sessions.clear(session_id)
        return ClearResponse(success=True, message="Conversation history cleared")

    def get_stats(self) -> StatsResponse:
        stats = self._sessions.stats()
        return StatsResponse(active_sessions=stats["active_sessions"], total_messages=stats["total_messages"])

    def _append_exchange(self, session_id: str, message: str, response: str) -> None:
        self._sessions.append(session_id, Turn(role="user", content=message))
        self._sessions.append(session_id, Turn(role="assistant", content=response))

    def _step_extract(self, context: TurnContext) -> None:
        context.bag = extract(context.user_message)
        context.intent = detect_intent(context.user_message)
        logger.info(
            "session=%s step=extract keywords=%s fallback=%s domain=%s subdomain=%s",
            context.session_id,
            context.bag.as_dict(),
            context.bag.from_fallback,
            context.intent.domain_active,
            context.intent.subdomain_active,
        )

    async def _step_retrieve(self, context: TurnContext) -> None:
        context.raw_candidates = await self._retriever.retrieve(context.bag, context.user_message, context.intent)

    async def _step_score(self, context: TurnContext) -> None:
        """Purpose: Rank raw candidates; fall back to domain-only documents if none survive.
        Inputs/Outputs: Mutates context.conversation.
        Failure Modes: Retrieval errors in the fallback are already recovered as [].
        If Removed: Candidates are never ranked and prompts lose their context.
        """
        ranked = self._scorer.filter_and_rank(context.raw_candidates, context.bag, context.intent)
        if not ranked and context.intent.domain_active:
            ranked = await self._retriever.fetch_domain_only(context.intent)
        context.conversation = ConversationContext.from_candidates(ranked)
        logger.info(
            "session=%s step=score raw=%d ranked=%d companies=%d",
            context.session_id,
            len(context.raw_candidates),
            len(context.conversation.candidates),
            len(context.conversation.related_companies),
        )

    def _step_gate(self, context: TurnContext) -> None:
        context.readiness = self._readiness.evaluate(context.user_message, context.history)
        logger.info(
            "session=%s step=gate ready=%s signals=%s",
            context.session_id,
            context.readiness.is_ready,
            context.readiness.signals.as_dict(),
        )

    def _step_assemble(self, context: TurnContext) -> None:
        context.prompt = self._assembler.build(
            self._assembler.system_policy,
            context.conversation,
            _require(context.readiness, "readiness"),
            context.history,
            context.user_message,
        )
        logger.info(
            "session=%s step=assemble mode=%s messages=%d",
            context.session_id,
            context.prompt.mode.value,
            len(context.prompt.messages),
        )

    async def _step_invoke(self, context: TurnContext) -> None:
        prompt = _require(context.prompt, "prompt")
        context.model_text = await self._completion.complete(
            prompt.messages, max_output_tokens=self._max_output_tokens
        )

    def _step_append_history(self, context: TurnContext) -> None:
        self._append_exchange(context.session_id, context.user_message, context.model_text)

    def _step_format(self, context: TurnContext) -> None:
        context.result = self._formatter.format(
            context.session_id,
            context.model_text,
            context.conversation,
            _require(context.readiness, "readiness"),
            _require(context.prompt, "prompt").mode,
        )
        logger.info(
            "session=%s step=format mode=%s cards=%d",
            context.session_id,
            context.result.mode,
            len(context.result.solution_cards),
        )
