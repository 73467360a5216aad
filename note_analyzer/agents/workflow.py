"""
LangGraph workflow for the note analysis pipeline.

The graph structure:
    1. intent_gate (entry point): retry-gated intent analysis
    2. Conditional routing:
       - review passed -> parallel_analysis -> summarize -> END
       - review never passed -> degraded -> END

Each ``NoteAnalysisPipeline`` compiles its own graph and owns its own
progress accumulators, so concurrent runs never share state as long as each
uses its own pipeline instance.
"""

from __future__ import annotations

import time
import uuid
from typing import Dict, List, Literal, Optional

from langgraph.graph import StateGraph, END

from ..utils.config import DEFAULT_TIMEOUT, AnalysisSettings, ProviderProfile, validate_profile
from ..utils.errors import ConfigurationError
from ..utils.logger import (
    get_pipeline_logger,
    log_error_with_context,
    log_performance_metrics,
    log_state_transition,
)
from ..utils.openai_client import ChatClient, create_chat_client
from .intent_gate import run_intent_gate
from .parallel_stage import run_parallel_analysis
from .prompts import build_degraded_message
from .single_call import AgentStreamCallback, ProgressCallback, tag_stream
from .state import (
    AgentId,
    AnalysisContext,
    PipelineResult,
    PipelineState,
    ProgressEvent,
    StatusEvent,
    TokenEvent,
)
from .summary_agent import generate_summary


logger = get_pipeline_logger()


def route_after_intent_gate(state: PipelineState) -> Literal["parallel_analysis", "degraded"]:
    """
    Conditional routing function after the intent review gate.

    Args:
        state: Current PipelineState.

    Returns:
        "parallel_analysis" if the intent passed review, "degraded" otherwise.
    """
    run_id = state.get("run_id")
    if state.get("review_passed", False):
        log_state_transition(logger, "intent_gate", "parallel_analysis", run_id=run_id)
        return "parallel_analysis"

    log_state_transition(
        logger,
        "intent_gate",
        "degraded",
        run_id=run_id,
        attempts=state.get("attempts", 0),
    )
    return "degraded"


class NoteAnalysisPipeline:
    """
    Multi-agent analysis of one study note.

    Attributes:
        client: Chat client for the configured provider
        model: Model used by every agent
        timeout: Per-agent-call timeout in seconds (None disables)
        status_messages: Status lines emitted during the current run
        snapshots: Latest partial output of each agent in the current run
    """

    def __init__(
        self,
        client: ChatClient,
        model: str,
        on_progress: Optional[ProgressCallback] = None,
        on_agent_stream: Optional[AgentStreamCallback] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        self.client = client
        self.model = model
        self.on_progress = on_progress
        self.on_agent_stream = on_agent_stream
        self.timeout = timeout

        self.status_messages: List[str] = []
        self.snapshots: Dict[str, str] = {}

        self.graph = self.build_graph().compile()

    # ------------------------------------------------------------------
    # Progress reporting
    # ------------------------------------------------------------------

    def emit(self, event: ProgressEvent) -> None:
        """Record a progress event and forward it to the caller's hooks."""
        if isinstance(event, StatusEvent):
            self.status_messages.append(event.message)
            logger.info("Progress | %s", event.message)
            if self.on_progress is not None:
                self.on_progress(event.message)
        elif isinstance(event, TokenEvent):
            self.snapshots[event.agent_id] = event.partial_text
            if self.on_agent_stream is not None:
                self.on_agent_stream(event.agent_id, event.partial_text)

    def _status(self, message: str) -> None:
        self.emit(StatusEvent(message))

    def _token(self, agent_id: str, partial_text: str) -> None:
        self.emit(TokenEvent(agent_id, partial_text))

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def intent_gate_node(self, state: PipelineState) -> PipelineState:
        """Run the retry-gated intent analysis."""
        self._status("🎯 开始分析用户意图...")
        result = await run_intent_gate(
            self.client,
            self.model,
            state["context"],
            on_progress=self._status,
            on_agent_stream=self._token,
            timeout=self.timeout,
            run_id=state.get("run_id"),
        )
        return {
            "intent": result.intent,
            "review_passed": result.review_passed,
            "attempts": result.attempts,
            "current_stage": "intent_gate",
        }

    async def degraded_node(self, state: PipelineState) -> PipelineState:
        """Replace the downstream analysis with the friendly fallback message."""
        self._status("⚠️ 意图分析未能通过审查，返回友善提示")
        return {
            "original": build_degraded_message(state.get("attempts", 0)),
            "correction": "",
            "summary": "",
            "current_stage": "degraded",
        }

    async def parallel_analysis_node(self, state: PipelineState) -> PipelineState:
        """Run the original-record and correction agents concurrently."""
        self._status("📝 正在分析原始记录和订正答案...")
        analysis = await run_parallel_analysis(
            self.client,
            self.model,
            state["intent"],
            state["context"],
            on_agent_stream=self._token,
            timeout=self.timeout,
            run_id=state.get("run_id"),
        )
        self._status("📊 原始记录和订正分析完成")
        log_state_transition(logger, "parallel_analysis", "summarize", run_id=state.get("run_id"))
        return {
            "original": analysis.original,
            "correction": analysis.correction,
            "current_stage": "parallel_analysis",
        }

    async def summary_node(self, state: PipelineState) -> PipelineState:
        """Generate the final report."""
        self._status("✨ 正在生成总结报告...")
        summary = await generate_summary(
            self.client,
            self.model,
            state["context"],
            state["intent"],
            state["original"],
            state["correction"],
            on_token=tag_stream(self._token, AgentId.SUMMARY.value),
            timeout=self.timeout,
        )
        self._status("✅ 分析完成！")
        return {"summary": summary, "current_stage": "summarize"}

    def build_graph(self) -> StateGraph:
        """
        Build the pipeline graph for this instance.

        Returns:
            Uncompiled StateGraph.
        """
        workflow = StateGraph(PipelineState)

        workflow.add_node("intent_gate", self.intent_gate_node)
        workflow.add_node("degraded", self.degraded_node)
        workflow.add_node("parallel_analysis", self.parallel_analysis_node)
        workflow.add_node("summarize", self.summary_node)

        workflow.set_entry_point("intent_gate")

        workflow.add_conditional_edges(
            "intent_gate",
            route_after_intent_gate,
            {
                "parallel_analysis": "parallel_analysis",
                "degraded": "degraded",
            },
        )
        workflow.add_edge("parallel_analysis", "summarize")
        workflow.add_edge("summarize", END)
        workflow.add_edge("degraded", END)

        return workflow

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, context: AnalysisContext) -> PipelineResult:
        """
        Analyse one note.

        Args:
            context: The note to analyse.

        Returns:
            PipelineResult. A review gate that never passes is a normal
            result with ``review_passed=False``.

        Raises:
            ConfigurationError: If the provider profile is unusable.
            openai.APIError / asyncio.TimeoutError: If an agent call fails.
        """
        run_id = uuid.uuid4().hex[:12]
        start_time = time.time()
        self.status_messages = []
        self.snapshots = {}

        logger.info("=" * 70)
        logger.info("NOTE ANALYSIS - Entry | run_id=%s | title=%s", run_id, context.title[:50])

        try:
            final_state = await self.graph.ainvoke({"run_id": run_id, "context": context})
        except Exception as exc:
            log_error_with_context(
                logger,
                exc,
                "note_analysis",
                run_id=run_id,
                duration=f"{time.time() - start_time:.2f}s",
            )
            raise

        result = PipelineResult(
            intent=final_state.get("intent", ""),
            original=final_state.get("original", ""),
            correction=final_state.get("correction", ""),
            summary=final_state.get("summary", ""),
            review_passed=final_state.get("review_passed", False),
        )

        log_performance_metrics(
            logger,
            operation="note_analysis",
            duration=time.time() - start_time,
            run_id=run_id,
            review_passed=result.review_passed,
            attempts=final_state.get("attempts", 0),
        )
        logger.info("NOTE ANALYSIS - Exit | run_id=%s | stage=%s", run_id, final_state.get("current_stage"))
        logger.info("=" * 70)
        return result


async def run_note_analysis(
    profile: ProviderProfile,
    context: AnalysisContext,
    on_progress: Optional[ProgressCallback] = None,
    on_agent_stream: Optional[AgentStreamCallback] = None,
    settings: Optional[AnalysisSettings] = None,
) -> PipelineResult:
    """
    Run the full analysis with a fresh client and pipeline.

    Configuration problems are reported before any agent call is made.

    Args:
        profile: Provider profile to use.
        context: The note to analyse.
        on_progress: Receives human-readable status lines.
        on_agent_stream: Receives ``(agent_id, partial_text)`` updates.
        settings: Feature switches (defaults to AnalysisSettings()).

    Returns:
        PipelineResult.
    """
    settings = settings or AnalysisSettings()
    if not settings.enabled:
        raise ConfigurationError("enabled", "AI analysis is disabled. Enable it in settings first.")
    validate_profile(profile)

    pipeline = NoteAnalysisPipeline(
        create_chat_client(profile),
        profile.model,
        on_progress=on_progress,
        on_agent_stream=on_agent_stream,
        timeout=settings.timeout,
    )
    return await pipeline.run(context)


__all__ = [
    "route_after_intent_gate",
    "NoteAnalysisPipeline",
    "run_note_analysis",
]
