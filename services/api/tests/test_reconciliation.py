from conftest import RecordingChannel

from wokai.services.reconciliation import Reconciler, build_step_change_notice
from wokai.services.session_state import Provenance, StepChange


def _change(index, provenance=Provenance.USER, completed=False):
    return StepChange(previous_index=0, index=index, total_steps=3, provenance=provenance, completed=completed)


def test_notice_forbids_navigation_and_quotes_step():
    notice = build_step_change_notice(_change(1), "Cook the spaghetti for 9 minutes.")
    assert "step 2 of 3" in notice
    assert "do not call" in notice
    assert "navigation tool" in notice
    assert '"Cook the spaghetti for 9 minutes."' in notice
    assert "completed" not in notice


def test_notice_mentions_completed_step():
    notice = build_step_change_notice(_change(1, completed=True), "Stir.")
    assert "already marked this step as completed" in notice


def test_agent_changes_are_not_echoed(channel):
    reconciler = Reconciler(["a", "b", "c"])
    reconciler.attach(channel)

    assert reconciler.observe(_change(1, Provenance.AGENT)) is None
    assert channel.frames == []
    assert reconciler.stats.sent == 0


def test_user_change_sends_exactly_one_notice(channel):
    reconciler = Reconciler(["a", "b", "c"])
    reconciler.attach(channel)

    reconciler.observe(_change(2))

    assert len(channel.updates) == 1
    assert '"c"' in channel.updates[0]
    assert reconciler.stats.sent == 1


def test_dropped_without_channel():
    reconciler = Reconciler(["a", "b", "c"])
    assert reconciler.observe(_change(1)) is None
    assert reconciler.stats.dropped == 1


def test_dropped_when_channel_closed(channel):
    reconciler = Reconciler(["a", "b", "c"])
    reconciler.attach(channel)
    channel.close()

    reconciler.observe(_change(1))

    assert channel.frames == []
    assert reconciler.stats.dropped == 1
    assert reconciler.connected is False


def test_no_replay_after_reconnect():
    reconciler = Reconciler(["a", "b", "c"])
    reconciler.observe(_change(1))

    fresh = RecordingChannel()
    reconciler.attach(fresh)

    assert fresh.frames == []
    reconciler.observe(_change(2))
    assert len(fresh.updates) == 1


def test_stale_detach_keeps_newer_channel():
    reconciler = Reconciler(["a", "b", "c"])
    old, new = RecordingChannel(), RecordingChannel()
    reconciler.attach(old)
    reconciler.attach(new)

    reconciler.detach(old)

    assert reconciler.channel is new


# --- Through a full session ---

def test_user_clicks_next_twice(cook_session, channel):
    cook_session.attach_agent(channel)

    cook_session.next_step()
    cook_session.next_step()

    assert cook_session.store.current_step_index == 2
    assert len(channel.updates) == 2
    assert "step 2 of 3" in channel.updates[0]
    assert "Cook the spaghetti for 9 minutes." in channel.updates[0]
    assert "step 3 of 3" in channel.updates[1]
    assert "Toss with garlic and olive oil." in channel.updates[1]


def test_agent_navigation_produces_no_notice(cook_session, channel):
    cook_session.attach_agent(channel)

    cook_session.invoke_tool("advance")
    cook_session.invoke_tool("repeat")
    cook_session.invoke_tool("jump", {"step": 1})
    cook_session.invoke_tool("retreat")

    assert channel.updates == []
    assert cook_session.reconciler.stats.sent == 0


def test_next_at_last_step_sends_nothing(cook_session, channel):
    cook_session.attach_agent(channel)
    cook_session.go_to_step(2)
    channel.frames.clear()

    assert cook_session.next_step() is None
    assert channel.frames == []


def test_user_change_after_agent_change_is_attributed_to_user(cook_session, channel):
    cook_session.attach_agent(channel)

    cook_session.invoke_tool("advance")
    cook_session.previous_step()

    assert len(channel.updates) == 1
    assert "step 1 of 3" in channel.updates[0]


def test_revisiting_completed_step_is_noted(cook_session, channel):
    cook_session.attach_agent(channel)
    cook_session.toggle_completed(1)

    cook_session.go_to_step(1)

    assert "already marked this step as completed" in channel.updates[0]


def test_disconnect_drops_and_keeps_local_state(cook_session, channel):
    cook_session.attach_agent(channel)
    cook_session.detach_agent(channel)

    cook_session.next_step()

    assert cook_session.store.current_step_index == 1
    assert channel.frames == []
    assert cook_session.reconciler.stats.dropped == 1


def test_out_of_range_user_targets_are_ignored(cook_session, channel):
    cook_session.attach_agent(channel)
    cook_session.go_to_step(1)
    channel.frames.clear()

    assert cook_session.go_to_step(3) is None
    assert cook_session.go_to_step(-1) is None
    assert cook_session.toggle_completed(5) is None

    assert cook_session.store.current_step_index == 1
    assert cook_session.store.completed_steps == frozenset()
    assert channel.frames == []
