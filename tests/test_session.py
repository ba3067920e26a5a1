import threading

import mpd
import pytest

from doubles import FakeMPDClient, command_error
from mpd_notification.models import PlayState, Track
from mpd_notification.session import (
    MpdSession,
    SessionCommandError,
    SessionConnectionError,
    backoff_delays,
    connect_with_backoff,
    parse_address,
    track_from_song,
)


@pytest.mark.parametrize(
    "address, expected",
    [
        ("127.0.0.1:6600", ("127.0.0.1", 6600)),
        ("music.local", ("music.local", 6600)),
        ("music.local:6601", ("music.local", 6601)),
        ("[::1]:6602", ("::1", 6602)),
        ("[::1]", ("::1", 6600)),
        ("fe80::1", ("fe80::1", 6600)),
        ("/run/mpd/socket", ("/run/mpd/socket", None)),
        ("", ("127.0.0.1", 6600)),
    ],
)
def test_parse_address(address, expected):
    assert parse_address(address) == expected


@pytest.mark.parametrize("address", ["host:port", "[::1"])
def test_parse_address_rejects_garbage(address):
    with pytest.raises(ValueError):
        parse_address(address)


def connect(address="localhost:6600", password=None, client=None):
    client = client or FakeMPDClient()
    return MpdSession.connect(address, password, client_factory=lambda: client), client


def test_connect_disables_timeouts():
    session, client = connect("localhost:6601")

    assert client.connected_with == ("localhost", 6601)
    assert client.timeout is None
    assert client.idletimeout is None
    assert session.address == "localhost:6601"


def test_connect_to_unix_socket():
    _, client = connect("/run/mpd/socket")

    assert client.connected_with == ("/run/mpd/socket",)


def test_connect_sends_password():
    _, client = connect(password="hunter2")

    assert client.passwords == ["hunter2"]


def test_refused_connection():
    client = FakeMPDClient(connect_error=ConnectionRefusedError(111, "refused"))

    with pytest.raises(SessionConnectionError):
        connect(client=client)
    assert client.disconnected


def test_rejected_password():
    client = FakeMPDClient(password_error=command_error("[3@0] {password} incorrect password"))

    with pytest.raises(SessionConnectionError, match="password"):
        connect(password="wrong", client=client)


def test_bad_address_is_a_connection_error():
    with pytest.raises(SessionConnectionError):
        connect("host:port")


def test_await_change_waits_on_player():
    session, client = connect()
    client.idle_replies = [["player"]]

    assert session.await_change(("player",)) == ["player"]
    assert client.idle_calls == [("player",)]


def test_await_change_connection_lost():
    session, client = connect()
    client.idle_replies = [mpd.ConnectionError("Connection lost while reading line")]

    with pytest.raises(SessionConnectionError):
        session.await_change(("player",))


def test_query_status():
    session, client = connect()
    client.status_reply = {"state": "play", "volume": "80", "song": "3"}

    status = session.query_status()

    assert status.state is PlayState.PLAYING
    assert status.playing
    assert status.extra == {"volume": "80", "song": "3"}


def test_query_status_command_error():
    session, client = connect()
    client.status_reply = command_error()

    with pytest.raises(SessionCommandError):
        session.query_status()


def test_query_status_unknown_state():
    session, client = connect()
    client.status_reply = {"state": "rewinding"}

    with pytest.raises(SessionCommandError):
        session.query_status()


def test_query_status_broken_pipe():
    session, client = connect()
    client.status_reply = BrokenPipeError(32, "Broken pipe")

    with pytest.raises(SessionConnectionError):
        session.query_status()


def test_nothing_queued():
    session, client = connect()
    client.currentsong_reply = {}

    assert session.query_current_track() is None


def test_current_track_tags():
    session, client = connect()
    client.currentsong_reply = {
        "file": "Artist/Album/01.flac",
        "last-modified": "2024-01-01T00:00:00Z",
        "title": "Track1",
        "artist": ["Artist", "Guest"],
        "album": ["Album", "Album (Deluxe)"],
        "albumartist": "Artist",
        "musicbrainz_albumid": "abc",
        "date": "1999",
        "duration": "201.5",
        "pos": "0",
        "id": "7",
    }

    track = session.query_current_track()

    assert track == Track(
        file="Artist/Album/01.flac",
        title="Track1",
        artist="Artist",
        tags=(
            ("Album", "Album"),
            ("Album", "Album (Deluxe)"),
            ("AlbumArtist", "Artist"),
            ("MUSICBRAINZ_ALBUMID", "abc"),
            ("Date", "1999"),
        ),
    )
    assert track.first_tag("Album") == "Album"


def test_track_without_title_or_artist():
    track = track_from_song({"file": "stream.ogg"})

    assert track.title is None
    assert track.artist is None
    assert track.tags == ()


def test_close_disconnects():
    session, client = connect()

    session.close()

    assert client.disconnected


def test_backoff_doubles_up_to_cap():
    delays = backoff_delays(1, 8)

    assert [next(delays) for _ in range(6)] == [1, 2, 4, 8, 8, 8]


class FlakyConnect:
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0

    def __call__(self, address, password):
        self.calls += 1
        if self.calls <= self.failures:
            raise SessionConnectionError("refused")
        return ("session", address, password)


def test_connect_with_backoff_retries_until_connected(capsys):
    flaky = FlakyConnect(failures=2)

    session = connect_with_backoff("h:1", "pw", connect=flaky, delays=[0, 0])

    assert session == ("session", "h:1", "pw")
    assert flaky.calls == 3
    assert "retrying" in capsys.readouterr().out


def test_connect_with_backoff_gives_up_after_max_attempts():
    flaky = FlakyConnect(failures=5)

    with pytest.raises(SessionConnectionError):
        connect_with_backoff("h:1", connect=flaky, max_attempts=3, delays=[0, 0, 0])
    assert flaky.calls == 3


def test_connect_with_backoff_stops_on_shutdown():
    stop = threading.Event()
    flaky = FlakyConnect(failures=5)

    def connect_then_stop(address, password):
        stop.set()
        return flaky(address, password)

    assert connect_with_backoff("h:1", stop_event=stop, connect=connect_then_stop, delays=[0]) is None
    assert flaky.calls == 1
