import pytest

from spp_lobby.heartbeat import announce_once, run_announce_loop


class RecordingClient:
    """Stands in for LobbyClient; replays scripted outcomes."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def register(self, port, players=None, **info):
        self.calls.append((port, players, info))
        return self.outcomes.pop(0)


class StopLoop(Exception):
    pass


def _sleep_n_times(n):
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) >= n:
            raise StopLoop
    return sleep, sleeps


def test_announce_once_passes_fields_through():
    client = RecordingClient([True])
    assert announce_once(client, 7777, players=["alice"], info={"name": "Arena"}) is True
    assert client.calls == [(7777, ["alice"], {"name": "Arena"})]


def test_announce_once_defaults():
    client = RecordingClient([False])
    assert announce_once(client, 7777) is False
    assert client.calls == [(7777, [], {})]


def test_loop_polls_players_each_cycle(capsys):
    client = RecordingClient([True, True, True])
    rosters = iter([[], ["alice"], ["alice", "bob"]])
    sleep, sleeps = _sleep_n_times(3)

    with pytest.raises(StopLoop):
        run_announce_loop(client, 7777, players_fn=lambda: next(rosters), interval=45, sleep=sleep)

    assert [players for _, players, _ in client.calls] == [[], ["alice"], ["alice", "bob"]]
    assert sleeps == [45, 45, 45]
    # Only the first transition is reported
    assert capsys.readouterr().err.count("[announce]") == 1


def test_loop_reports_state_changes(capsys):
    client = RecordingClient([True, False, False, True])
    sleep, _ = _sleep_n_times(4)

    with pytest.raises(StopLoop):
        run_announce_loop(client, 7777, sleep=sleep)

    err = capsys.readouterr().err
    assert "init -> ok" in err
    assert "ok -> failed" in err
    assert "failed -> ok" in err
    assert err.count("[announce]") == 3
