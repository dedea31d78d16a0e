import asyncio
from dataclasses import replace

import pytest

from agents import MOCK_RESPONSE
from conversation import (
    EMAIL_ERROR,
    STEP_ORDER,
    TRANSITION_DELAY_MS,
    Conversation,
    ConversationState,
    Phase,
    Step,
    next_step,
)

ANSWERS = ["clients forget us", "Ana", "finance", "ana@x.com"]


class Recorder:
    def __init__(self, narrative=MOCK_RESPONSE, fail_generate=False, fail_deliver=False):
        self.narrative = narrative
        self.fail_generate = fail_generate
        self.fail_deliver = fail_deliver
        self.generated = []
        self.delivered = []
        self.steps = []
        self.phases = []

    async def generate(self, submission):
        self.generated.append(submission)
        if self.fail_generate:
            raise RuntimeError("upstream down")
        return self.narrative

    async def deliver(self, submission, narrative):
        self.delivered.append((submission, narrative))
        if self.fail_deliver:
            raise RuntimeError("sendgrid down")

    def on_change(self, state: ConversationState):
        if not self.steps or self.steps[-1] is not state.step:
            self.steps.append(state.step)
        if not self.phases or self.phases[-1] is not state.phase:
            self.phases.append(state.phase)


def _conversation(scheduler, recorder):
    return Conversation(recorder.generate, recorder.deliver, scheduler=scheduler, on_change=recorder.on_change)


async def _run_to_done(conversation, scheduler):
    for answer in ANSWERS:
        assert conversation.submit(answer)
        scheduler.advance(TRANSITION_DELAY_MS)
    assert conversation.state.step is Step.CALCULATING
    await conversation.settle()
    scheduler.advance(TRANSITION_DELAY_MS)


def test_next_step_follows_fixed_order():
    assert [next_step(s) for s in STEP_ORDER] == list(STEP_ORDER[1:]) + [Step.DONE]


def test_four_answers_reach_done_without_skipping(scheduler):
    recorder = Recorder()
    conversation = _conversation(scheduler, recorder)

    asyncio.run(_run_to_done(conversation, scheduler))

    state = conversation.state
    assert state.step is Step.DONE
    assert recorder.steps == list(STEP_ORDER)
    assert (state.problem, state.name, state.industry, state.email) == tuple(ANSWERS)
    assert state.narrative == MOCK_RESPONSE
    assert len(recorder.generated) == 1
    assert len(recorder.delivered) == 1


def test_phase_sequence_timing(scheduler):
    conversation = _conversation(scheduler, Recorder())

    async def scenario():
        conversation.submit("clients forget us")
        scheduler.advance(0)
        assert conversation.state.phase is Phase.THINKING
        scheduler.advance(1199)
        assert conversation.state.phase is Phase.THINKING
        scheduler.advance(1)
        assert conversation.state.phase is Phase.FADING_OUT
        assert conversation.state.step is Step.PROBLEM
        scheduler.advance(300)
        assert conversation.state.phase is Phase.FADING_IN
        assert conversation.state.step is Step.NAME
        scheduler.advance(300)
        assert conversation.state.phase is Phase.IDLE

    asyncio.run(scenario())


def test_generation_waits_for_calculating_and_replays_sequence(scheduler):
    recorder = Recorder()
    conversation = _conversation(scheduler, recorder)

    async def scenario():
        for answer in ANSWERS[:3]:
            conversation.submit(answer)
            scheduler.advance(TRANSITION_DELAY_MS)
        conversation.submit(ANSWERS[3])
        scheduler.advance(TRANSITION_DELAY_MS - 1)
        await asyncio.sleep(0)
        assert recorder.generated == []
        scheduler.advance(1)
        await conversation.settle()
        assert conversation.state.step is Step.CALCULATING
        recorder.phases.clear()
        scheduler.advance(TRANSITION_DELAY_MS + 300)

    asyncio.run(scenario())

    assert recorder.phases == [Phase.THINKING, Phase.FADING_OUT, Phase.FADING_IN, Phase.IDLE]
    assert conversation.state.step is Step.DONE


@pytest.mark.parametrize("blank", ["", "   ", "\t\n"])
@pytest.mark.parametrize("answered", range(len(ANSWERS)))
def test_blank_answer_is_a_no_op(scheduler, answered, blank):
    recorder = Recorder()
    conversation = _conversation(scheduler, recorder)

    async def scenario():
        for answer in ANSWERS[:answered]:
            assert conversation.submit(answer)
            scheduler.advance(TRANSITION_DELAY_MS + 300)
        before = replace(conversation.state)
        assert before.step is STEP_ORDER[answered]
        assert before.phase is Phase.IDLE

        assert conversation.submit(blank) is False
        assert scheduler.pending == []
        assert conversation.state == before

    asyncio.run(scenario())

    assert recorder.generated == []


def test_invalid_email_sets_error_without_transition(scheduler):
    conversation = _conversation(scheduler, Recorder())

    async def scenario():
        for answer in ANSWERS[:3]:
            conversation.submit(answer)
            scheduler.advance(TRANSITION_DELAY_MS + 300)
        assert conversation.submit("ana@nowhere") is False

    asyncio.run(scenario())

    assert conversation.state.step is Step.EMAIL
    assert conversation.state.email_error == EMAIL_ERROR
    assert conversation.state.email == ""
    assert scheduler.pending == []


def test_submit_while_transition_pending_is_rejected(scheduler):
    conversation = _conversation(scheduler, Recorder())

    assert conversation.submit("clients forget us")
    assert conversation.submit("second thought") is False
    scheduler.advance(TRANSITION_DELAY_MS)

    assert conversation.state.problem == "clients forget us"
    assert conversation.state.name == ""
    assert conversation.state.step is Step.NAME


def test_pending_input_buffer_is_submitted_and_cleared(scheduler):
    conversation = _conversation(scheduler, Recorder())

    conversation.type("clients forget us")
    assert conversation.submit()

    assert conversation.state.pending_input == ""
    assert conversation.state.problem == "clients forget us"


def test_restart_from_done_clears_everything(scheduler):
    conversation = _conversation(scheduler, Recorder())
    asyncio.run(_run_to_done(conversation, scheduler))

    conversation.restart()

    assert conversation.state == ConversationState()
    assert conversation.state.step is Step.PROBLEM
    assert conversation.state.narrative is None
    assert scheduler.pending == []


def test_restart_cancels_pending_timers(scheduler):
    recorder = Recorder()
    conversation = _conversation(scheduler, recorder)

    conversation.submit("clients forget us")
    scheduler.advance(100)
    conversation.restart()
    scheduler.advance(10_000)

    assert conversation.state.step is Step.PROBLEM
    assert conversation.state.phase is Phase.IDLE


def test_restart_during_generation_drops_the_stale_run(scheduler):
    release = None
    recorder = Recorder()

    async def slow_generate(submission):
        await release.wait()
        return MOCK_RESPONSE

    conversation = Conversation(slow_generate, recorder.deliver, scheduler=scheduler)

    async def scenario():
        nonlocal release
        release = asyncio.Event()
        for answer in ANSWERS:
            conversation.submit(answer)
            scheduler.advance(TRANSITION_DELAY_MS)
        conversation.restart()
        conversation.submit("a brand new problem")
        release.set()
        await conversation.settle()
        scheduler.advance(TRANSITION_DELAY_MS)

    asyncio.run(scenario())

    assert recorder.delivered == []
    assert conversation.state.step is Step.NAME
    assert conversation.state.narrative is None
    assert conversation.state.problem == "a brand new problem"


def test_failed_generation_still_reaches_done(scheduler):
    recorder = Recorder(fail_generate=True)
    conversation = _conversation(scheduler, recorder)

    asyncio.run(_run_to_done(conversation, scheduler))

    assert conversation.state.step is Step.DONE
    assert conversation.state.narrative is None
    assert recorder.delivered == []


def test_failed_delivery_does_not_roll_back_done(scheduler):
    recorder = Recorder(fail_deliver=True)
    conversation = _conversation(scheduler, recorder)

    asyncio.run(_run_to_done(conversation, scheduler))

    assert conversation.state.step is Step.DONE
    assert conversation.state.narrative == MOCK_RESPONSE
    assert len(recorder.delivered) == 1


def test_empty_teaser_skips_delivery(scheduler):
    empty = MOCK_RESPONSE.model_copy(update={"teaser": ""})
    recorder = Recorder(narrative=empty)
    conversation = _conversation(scheduler, recorder)

    asyncio.run(_run_to_done(conversation, scheduler))

    assert conversation.state.step is Step.DONE
    assert recorder.delivered == []


def test_submissions_ignored_outside_input_steps(scheduler):
    conversation = _conversation(scheduler, Recorder())
    asyncio.run(_run_to_done(conversation, scheduler))

    assert conversation.submit("more text") is False
    assert conversation.state.step is Step.DONE
