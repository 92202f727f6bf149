"""Tests for the playback transformer and the playback engine."""
from __future__ import annotations

from dataclasses import replace

import pytest

from agentreplay.commands.play import PLAYBACK_KEYS, handle_key
from agentreplay.model import ApprovalState, PlaybackMessage, Role, ToolCall, UnifiedMessage
from agentreplay.playback.engine import PlaybackEngine, PlaybackStatus, is_pair_at, resolve_prefix
from agentreplay.playback.transform import is_visible, to_playback
from agentreplay.settings import DisplaySettings


def _user(text: str = "hi") -> UnifiedMessage:
    return UnifiedMessage(role=Role.USER, content=text)


def _assistant(text: str = "hello") -> UnifiedMessage:
    return UnifiedMessage(role=Role.ASSISTANT, content=text)


def _tool_call(name: str = "Read") -> UnifiedMessage:
    return UnifiedMessage(role=Role.TOOL_CALL, content=name, tool_call=ToolCall(name=name, args={"p": "a"}))


def _roles(msgs) -> list[Role]:
    return [m.role for m in msgs]


@pytest.fixture
def engine(scheduler):
    frames: list[int] = []
    eng = PlaybackEngine(scheduler, on_change=lambda e: frames.append(e.cursor))
    eng.frames = frames
    return eng


# ── Transformer ───────────────────────────────────────────────────────

class TestToPlayback:
    def test_expansion(self, sample_messages):
        steps = to_playback(sample_messages, DisplaySettings())
        assert _roles(steps) == [
            Role.USER, Role.THINKING,
            Role.THINKING_ANIMATION, Role.ASSISTANT,
            Role.APPROVAL, Role.TOOL_CALL,
            Role.TOOL_RESULT,
            Role.THINKING_ANIMATION, Role.ASSISTANT,
        ]

    def test_approval_carries_tool_call(self, sample_messages):
        steps = to_playback(sample_messages, DisplaySettings())
        approval = steps[4]
        assert approval.approval == ApprovalState("pending")
        assert approval.tool_call == steps[5].tool_call

    def test_visibility_filters_before_expansion(self, sample_messages):
        settings = DisplaySettings(show_thinking=False, show_tool_calls=False, show_tool_results=False)
        steps = to_playback(sample_messages, settings)
        assert _roles(steps) == [
            Role.USER, Role.THINKING_ANIMATION, Role.ASSISTANT,
            Role.THINKING_ANIMATION, Role.ASSISTANT,
        ]

    def test_length_formula(self, sample_messages):
        settings = DisplaySettings(show_tool_results=False)
        visible = [m for m in sample_messages if is_visible(m, settings)]
        expected = len(visible) + sum(1 for m in visible if m.role in (Role.ASSISTANT, Role.TOOL_CALL))
        assert len(to_playback(sample_messages, settings)) == expected

    def test_subagent_is_single_step(self):
        from agentreplay.model import SubagentConversation
        msg = UnifiedMessage(role=Role.SUBAGENT, content="Subagent: x",
                             subagent=SubagentConversation(id="x"))
        assert _roles(to_playback([msg], DisplaySettings())) == [Role.SUBAGENT]

    def test_empty(self):
        assert to_playback([], DisplaySettings()) == []


class TestPrefix:
    def test_pairs_collapse_to_result(self):
        steps = to_playback([_user(), _assistant(), _tool_call()], DisplaySettings())
        assert _roles(resolve_prefix(steps, len(steps))) == [Role.USER, Role.ASSISTANT, Role.TOOL_CALL]

    def test_is_pair_at(self):
        steps = to_playback([_user(), _assistant()], DisplaySettings())
        assert not is_pair_at(steps, 0)
        assert is_pair_at(steps, 1)
        assert not is_pair_at(steps, 2)


# ── Engine: timed playback ────────────────────────────────────────────

class TestTimedPlayback:
    def test_user_then_assistant(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        assert engine.status is PlaybackStatus.PLAYING
        assert _roles(engine.displayed) == [Role.USER]

        scheduler.advance(0.79)
        assert _roles(engine.displayed) == [Role.USER]
        scheduler.advance(0.01)
        assert _roles(engine.displayed) == [Role.USER, Role.THINKING_ANIMATION]

        scheduler.advance(1.99)
        assert _roles(engine.displayed) == [Role.USER, Role.THINKING_ANIMATION]
        scheduler.advance(0.01)
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT]
        assert engine.status is PlaybackStatus.PLAYING

        scheduler.advance(1.0)
        assert engine.status is PlaybackStatus.FINISHED
        assert engine.cursor == engine.total == 3

    def test_approval_sequence(self, engine, scheduler):
        engine.load([_tool_call()])
        engine.play()
        (slot,) = engine.displayed
        assert slot.role is Role.APPROVAL
        assert slot.approval.status == "pending"

        scheduler.advance(2.5)
        (slot,) = engine.displayed
        assert slot.role is Role.APPROVAL
        assert slot.approval.status == "approved"

        scheduler.advance(2.0)
        (slot,) = engine.displayed
        assert slot.role is Role.TOOL_CALL
        assert slot.approval is None

        scheduler.advance(0.5)
        assert engine.status is PlaybackStatus.FINISHED

    def test_single_step_delays(self, engine, scheduler):
        engine.load([
            UnifiedMessage(role=Role.THINKING, content="hmm"),
            UnifiedMessage(role=Role.TOOL_RESULT, content="ok"),
            UnifiedMessage(role=Role.USER, content="last"),
        ])
        engine.play()
        assert engine.cursor == 1
        scheduler.advance(1.5)
        assert engine.cursor == 2
        scheduler.advance(0.3)
        assert engine.cursor == 3
        scheduler.advance(0.8)
        assert engine.status is PlaybackStatus.FINISHED

    def test_speed_scales_delays(self, scheduler):
        eng = PlaybackEngine(scheduler, DisplaySettings(playback_speed=2.0))
        eng.load([_user(), _assistant()])
        eng.play()
        scheduler.advance(0.4)
        assert _roles(eng.displayed) == [Role.USER, Role.THINKING_ANIMATION]
        scheduler.advance(1.0)
        assert _roles(eng.displayed) == [Role.USER, Role.ASSISTANT]
        scheduler.advance(0.5)
        assert eng.status is PlaybackStatus.FINISHED

    def test_empty_conversation(self, engine):
        engine.load([])
        engine.play()
        assert engine.status is PlaybackStatus.IDLE
        assert engine.displayed == []

    def test_change_notifications(self, engine, scheduler):
        engine.load([_user()])
        engine.play()
        scheduler.run_all()
        assert engine.frames[0] == 0
        assert engine.frames[-1] == 1


# ── Engine: controls ──────────────────────────────────────────────────

class TestControls:
    def test_pause_mid_pair_hides_placeholder(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        scheduler.advance(0.8)
        assert _roles(engine.displayed) == [Role.USER, Role.THINKING_ANIMATION]

        engine.pause()
        assert engine.status is PlaybackStatus.PAUSED
        assert _roles(engine.displayed) == [Role.USER]
        scheduler.advance(60)
        assert _roles(engine.displayed) == [Role.USER]
        assert scheduler.pending == []

    def test_resume_replays_pair(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        scheduler.advance(1.0)
        engine.pause()
        engine.resume()
        assert _roles(engine.displayed) == [Role.USER, Role.THINKING_ANIMATION]
        scheduler.advance(2.0)
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT]

    def test_toggle(self, engine, scheduler):
        engine.load([_user(), _user("again")])
        engine.toggle()
        assert engine.status is PlaybackStatus.PLAYING
        engine.toggle()
        assert engine.status is PlaybackStatus.PAUSED
        engine.toggle()
        assert engine.status is PlaybackStatus.PLAYING
        scheduler.run_all()
        assert engine.status is PlaybackStatus.FINISHED
        engine.toggle()
        assert engine.status is PlaybackStatus.PLAYING
        assert engine.cursor == 1

    def test_play_while_playing_is_noop(self, engine, scheduler):
        engine.load([_user(), _user("b")])
        engine.play()
        generation = engine.generation
        engine.play()
        assert engine.generation == generation
        assert len(scheduler.pending) == 1

    def test_restart(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        scheduler.run_all()
        assert engine.status is PlaybackStatus.FINISHED
        engine.restart()
        assert engine.status is PlaybackStatus.PLAYING
        assert _roles(engine.displayed) == [Role.USER]

    def test_restart_empty_is_idle(self, engine):
        engine.load([])
        engine.restart()
        assert engine.status is PlaybackStatus.IDLE

    def test_close_stops_timers(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        engine.close()
        assert scheduler.pending == []
        assert engine.status is PlaybackStatus.PAUSED


# ── Engine: stepping ──────────────────────────────────────────────────

class TestStepping:
    def test_forward_resolves_pairs(self, engine):
        engine.load([_user(), _assistant(), _tool_call()])
        engine.step_forward()
        assert _roles(engine.displayed) == [Role.USER]
        assert engine.status is PlaybackStatus.PAUSED
        engine.step_forward()
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT]
        assert engine.cursor == 3
        engine.step_forward()
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT, Role.TOOL_CALL]
        assert engine.status is PlaybackStatus.FINISHED

    def test_forward_at_end_is_noop(self, engine):
        engine.load([_user()])
        engine.step_forward()
        engine.step_forward()
        assert engine.cursor == 1
        assert engine.status is PlaybackStatus.FINISHED

    def test_backward_collapses_pair(self, engine):
        engine.load([_user(), _assistant(), _user("again")])
        engine.step_forward()
        engine.step_forward()
        engine.step_backward()
        assert _roles(engine.displayed) == [Role.USER]
        assert engine.cursor == 1
        assert engine.status is PlaybackStatus.PAUSED

    def test_three_forward_one_back(self, engine):
        engine.load([_user(), _assistant(), _user("again")])
        for _ in range(3):
            engine.step_forward()
        assert engine.status is PlaybackStatus.FINISHED
        engine.step_backward()
        assert [m.content for m in engine.displayed] == ["hi", "hello"]
        assert engine.status is PlaybackStatus.PAUSED

    def test_backward_to_start_is_idle(self, engine):
        engine.load([_user()])
        engine.step_forward()
        engine.step_backward()
        assert engine.cursor == 0
        assert engine.status is PlaybackStatus.IDLE
        assert engine.displayed == []

    def test_backward_at_zero_is_noop(self, engine):
        engine.load([_user()])
        frames = len(engine.frames)
        engine.step_backward()
        assert engine.cursor == 0
        assert len(engine.frames) == frames

    def test_step_one_slot_each(self, engine, sample_messages):
        engine.load(sample_messages)
        counts = []
        while engine.status is not PlaybackStatus.FINISHED:
            engine.step_forward()
            counts.append(len(engine.displayed))
        assert counts == list(range(1, len(sample_messages) + 1))
        while engine.cursor:
            before = len(engine.displayed)
            engine.step_backward()
            assert len(engine.displayed) == before - 1

    def test_step_during_pair_never_leaves_placeholder(self, engine, scheduler):
        engine.load([_user(), _assistant(), _user("next")])
        engine.play()
        scheduler.advance(0.8)
        assert engine.displayed[-1].role is Role.THINKING_ANIMATION
        engine.step_forward()
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT]
        assert engine.status is PlaybackStatus.PAUSED
        assert scheduler.pending == []

    def test_step_back_during_pair_removes_placeholder(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        scheduler.advance(0.8)
        engine.step_backward()
        assert _roles(engine.displayed) == [Role.USER]
        assert engine.status is PlaybackStatus.PAUSED

    def test_play_after_stepping_resumes_at_cursor(self, engine, scheduler):
        engine.load([_user(), _user("b"), _user("c")])
        engine.step_forward()
        engine.play()
        assert engine.cursor == 2
        scheduler.run_all()
        assert engine.status is PlaybackStatus.FINISHED


# ── Engine: cancellation and settings ─────────────────────────────────

class TestCancellation:
    def test_stale_continuation_is_ignored(self, engine, scheduler):
        engine.load([_user(), _user("b")])
        engine.play()
        (stale,) = scheduler.pending
        engine.pause()
        engine.resume()
        cursor = engine.cursor
        stale.callback()
        assert engine.cursor == cursor

    def test_every_cancel_bumps_generation(self, engine):
        engine.load([_user(), _user("b")])
        g0 = engine.generation
        engine.play()
        engine.pause()
        assert engine.generation > g0

    def test_load_supersedes_running_playback(self, engine, scheduler):
        engine.load([_user(), _assistant()])
        engine.play()
        scheduler.advance(0.8)
        engine.load([_user("other")])
        assert engine.status is PlaybackStatus.IDLE
        assert engine.displayed == []
        scheduler.advance(10)
        assert engine.displayed == []

    def test_visibility_change_resets(self, engine, scheduler, sample_messages):
        engine.load(sample_messages)
        engine.play()
        scheduler.advance(3)
        engine.update_settings(replace(engine.settings, show_thinking=False))
        assert engine.status is PlaybackStatus.IDLE
        assert engine.cursor == 0
        assert Role.THINKING not in _roles(engine.steps)
        assert scheduler.pending == []

    def test_speed_change_keeps_position(self, engine, scheduler):
        engine.load([_user(), _user("b"), _user("c")])
        engine.play()
        scheduler.advance(0.8)
        assert engine.cursor == 2
        engine.update_settings(replace(engine.settings, playback_speed=4.0))
        assert engine.status is PlaybackStatus.PLAYING
        assert engine.cursor == 2
        # the wait already scheduled keeps its 1x length
        scheduler.advance(0.2)
        assert engine.cursor == 2
        scheduler.advance(0.6)
        assert engine.cursor == 3


class TestKeyControls:
    def test_arrows_step_through_pairs(self, engine):
        engine.load([_user(), _assistant()])
        assert handle_key(engine, "right")
        assert _roles(engine.displayed) == [Role.USER]
        assert engine.status is PlaybackStatus.PAUSED
        handle_key(engine, "l")
        assert _roles(engine.displayed) == [Role.USER, Role.ASSISTANT]
        assert engine.status is PlaybackStatus.FINISHED
        handle_key(engine, "left")
        assert _roles(engine.displayed) == [Role.USER]
        handle_key(engine, "h")
        assert engine.displayed == []
        assert engine.status is PlaybackStatus.IDLE

    def test_space_toggles(self, engine, scheduler):
        engine.load([_user(), _user("b")])
        handle_key(engine, "space")
        assert engine.status is PlaybackStatus.PLAYING
        handle_key(engine, "space")
        assert engine.status is PlaybackStatus.PAUSED
        assert scheduler.pending == []

    def test_r_restarts(self, engine, scheduler):
        engine.load([_user(), _user("b")])
        engine.play()
        scheduler.run_all()
        assert engine.status is PlaybackStatus.FINISHED
        handle_key(engine, "r")
        assert engine.status is PlaybackStatus.PLAYING
        assert engine.cursor == 1
        scheduler.run_all()
        assert engine.cursor == 2

    def test_unbound_key_is_ignored(self, engine):
        engine.load([_user()])
        seen = len(engine.frames)
        assert not handle_key(engine, "x")
        assert not handle_key(engine, "q")
        assert engine.status is PlaybackStatus.IDLE
        assert len(engine.frames) == seen

    def test_every_binding_names_an_engine_operation(self):
        for operation in PLAYBACK_KEYS.values():
            assert callable(getattr(PlaybackEngine, operation))


class TestPlaybackMessage:
    def test_with_approval(self):
        step = PlaybackMessage(role=Role.APPROVAL, content="", tool_call=ToolCall("X"),
                               approval=ApprovalState("pending"))
        approved = step.with_approval("approved", "yes")
        assert approved.approval.status == "approved"
        assert step.approval.status == "pending"

    def test_approval_only_on_approval_steps(self):
        with pytest.raises(ValueError):
            PlaybackMessage(role=Role.USER, content="x", approval=ApprovalState())

    def test_unified_rejects_playback_roles(self):
        with pytest.raises(ValueError):
            UnifiedMessage(role=Role.THINKING_ANIMATION, content="")
