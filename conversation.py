"""
Step/transition state machine for the conversational form.

Steps run in a fixed line, problem -> name -> industry -> email ->
calculating -> done. Between two steps a purely visual phase sequence plays
(thinking, fadingOut, fadingIn, idle). Every phase change and step change is a
scheduled callback held in one registry per Conversation, so restart() can
cancel all of them before anything else happens.

Entering ``calculating`` starts generation then delivery as an asyncio task;
once both settle the phase sequence plays a second time and the step moves to
``done``. Failures there are logged and never keep the flow from finishing.
"""

import asyncio, json, logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from schemas import NarrativeResult, Submission, is_valid_email

logger = logging.getLogger("giftbrief")


class Step(str, Enum):
    PROBLEM     = "problem"
    NAME        = "name"
    INDUSTRY    = "industry"
    EMAIL       = "email"
    CALCULATING = "calculating"
    DONE        = "done"


class Phase(str, Enum):
    IDLE       = "idle"
    THINKING   = "thinking"
    FADING_OUT = "fadingOut"
    FADING_IN  = "fadingIn"


@dataclass(frozen=True)
class TransitionStep:
    phase:       Phase
    duration_ms: int


TRANSITION_SEQUENCE = (
    TransitionStep(Phase.THINKING,   1200),
    TransitionStep(Phase.FADING_OUT, 300),
    TransitionStep(Phase.FADING_IN,  300),
    TransitionStep(Phase.IDLE,       0),
)

# the step swaps once fadingOut ends, so fadingIn reveals the new step
TRANSITION_DELAY_MS = 1200 + 300

STEP_ORDER  = tuple(Step)
INPUT_STEPS = (Step.PROBLEM, Step.NAME, Step.INDUSTRY, Step.EMAIL)

INPUT_LABELS = {
    Step.PROBLEM:  "Tell me what you're trying to solve, and I'll tailor this for you.",
    Step.NAME:     "Got it. Who should I personalize this for?",
    Step.INDUSTRY: "Which industry are you in? This helps me tune the results.",
    Step.EMAIL:    "Almost done. Where should I send your custom results?",
}

EMAIL_ERROR = "Please enter a valid email"

Generate = Callable[[Submission], Awaitable[NarrativeResult]]
Deliver  = Callable[[Submission, NarrativeResult], Awaitable[None]]


def next_step(current: Step) -> Step:
    idx = STEP_ORDER.index(current)
    return STEP_ORDER[idx + 1] if idx + 1 < len(STEP_ORDER) else current


@dataclass
class ConversationState:
    step:          Step = Step.PROBLEM
    phase:         Phase = Phase.IDLE
    problem:       str = ""
    name:          str = ""
    industry:      str = ""
    email:         str = ""
    pending_input: str = ""
    email_error:   str = ""
    narrative:     Optional[NarrativeResult] = None

    def submission(self) -> Submission:
        return Submission(problem=self.problem, name=self.name, industry=self.industry, email=self.email)


class LoopScheduler:
    """Adapts an asyncio loop to millisecond delays."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay_ms / 1000, callback)


@dataclass
class _Registry:
    handles: list = field(default_factory=list)

    def add(self, handle) -> None:
        self.handles.append(handle)

    def cancel_all(self) -> None:
        for handle in self.handles:
            handle.cancel()
        self.handles = []


class Conversation:
    def __init__(self, generate: Generate, deliver: Deliver, scheduler=None,
                 on_change: Optional[Callable[[ConversationState], None]] = None):
        self._generate  = generate
        self._deliver   = deliver
        self._scheduler = scheduler or LoopScheduler()
        self._on_change = on_change
        self._timers    = _Registry()
        self._epoch     = 0
        self._advancing = False
        self._task: Optional[asyncio.Task] = None
        self.state = ConversationState()

    # ── Public API ────────────────────────────────────────────────────────────
    @property
    def busy(self) -> bool:
        return self._advancing

    def type(self, text: str) -> None:
        self.state.pending_input = text
        self._changed()

    def submit(self, value: Optional[str] = None) -> bool:
        """Answer the current step. Returns True when a transition started."""
        value = self.state.pending_input if value is None else value
        step = self.state.step
        if self._advancing or step not in INPUT_STEPS or not value.strip():
            return False

        if step is Step.EMAIL and not is_valid_email(value.strip()):
            self.state.email_error = EMAIL_ERROR
            self._changed()
            return False
        self.state.email_error = ""

        setattr(self.state, step.value, value.strip())
        self.state.pending_input = ""
        self._advancing = True
        self._timers.cancel_all()
        self._run_transition()

        if step is Step.EMAIL:
            self._schedule(self._enter_calculating, TRANSITION_DELAY_MS)
        else:
            self._schedule(lambda: self._advance_to(next_step(step)), TRANSITION_DELAY_MS)
        self._changed()
        return True

    def restart(self) -> None:
        self._epoch += 1
        self._timers.cancel_all()
        self._advancing = False
        self.state = ConversationState()
        self._changed()

    def close(self) -> None:
        self._epoch += 1
        self._timers.cancel_all()

    async def settle(self) -> None:
        """Wait for an in-flight generation/delivery task, if any."""
        if self._task is not None:
            await self._task

    # ── Scheduling ────────────────────────────────────────────────────────────
    def _schedule(self, fn: Callable[[], None], delay_ms: int) -> None:
        self._timers.add(self._scheduler.call_later(delay_ms, fn))

    def _run_transition(self) -> None:
        total = 0
        for step in TRANSITION_SEQUENCE:
            self._schedule(lambda phase=step.phase: self._set_phase(phase), total)
            total += step.duration_ms

    def _set_phase(self, phase: Phase) -> None:
        self.state.phase = phase
        self._changed()

    def _advance_to(self, step: Step) -> None:
        self.state.step = step
        self._advancing = False
        self._changed()

    def _enter_calculating(self) -> None:
        self.state.step = Step.CALCULATING
        self._changed()
        self._task = asyncio.get_running_loop().create_task(self._calculate(self._epoch))

    async def _calculate(self, epoch: int) -> None:
        submission = self.state.submission()
        narrative = None
        try:
            narrative = await self._generate(submission)
        except Exception as e:
            logger.error(json.dumps({"event": "conversation_generate_failed", "error": str(e)}))

        if epoch != self._epoch:
            return
        if narrative is not None and narrative.deliverable:
            self.state.narrative = narrative
            try:
                await self._deliver(submission, narrative)
            except Exception as e:
                logger.error(json.dumps({"event": "conversation_deliver_failed", "error": str(e)}))
        else:
            logger.warning(json.dumps({"event": "conversation_deliver_skipped", "email": submission.email}))

        if epoch != self._epoch:
            return
        self._timers.cancel_all()
        self._run_transition()
        self._schedule(lambda: self._advance_to(Step.DONE), TRANSITION_DELAY_MS)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
