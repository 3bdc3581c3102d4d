from __future__ import annotations

import pytest

from pipchat.errors.internal import MalformedMessage
from pipchat.irc.message import (
    IRCMessage,
    Prefix,
    build_irc_line,
    parse_irc_message,
    unescape_tag_value,
)

PRIVMSG_LINE = (
    "@badge-info=;badges=broadcaster/1;color=#0000FF;display-name=Bob;"
    "emotes=;id=b34ccfc7-4977-403a-8a94-33c6bac34fb8;mod=0;"
    "system-msg=bob\\shas\\ssubscribed\\:\\sthanks! "
    ":bob!bob@bob.tmi.twitch.tv PRIVMSG #abc :hi there friends"
)


def test_parse_recovers_tags_prefix_command_and_trailing():
    msg = parse_irc_message(PRIVMSG_LINE)
    assert msg.command == "PRIVMSG"
    assert msg.prefix == Prefix(nickname="bob", user="bob", host="bob.tmi.twitch.tv")
    assert msg.tags["display-name"] == "Bob"
    assert msg.tags["color"] == "#0000FF"
    assert msg.tags["badge-info"] == ""
    assert msg.params == ("#abc", "hi there friends")


def test_raw_tags_keep_escaped_form():
    msg = parse_irc_message(PRIVMSG_LINE)
    assert msg.tags["system-msg"] == "bob has subscribed; thanks!"
    assert msg.raw_tags["system-msg"] == "bob\\shas\\ssubscribed\\:\\sthanks!"


def test_unescape_tag_value():
    assert unescape_tag_value("a\\sb\\:c\\\\d") == "a b;c\\d"


def test_unescape_crlf_and_unknown_sequences():
    assert unescape_tag_value("line\\rone\\ntwo") == "line\rone\ntwo"
    # Unmapped sequences stay as they are
    assert unescape_tag_value("x\\yz\\") == "x\\yz\\"


def test_unescape_is_left_to_right():
    # "\\\\s" is an escaped backslash followed by a plain "s"
    assert unescape_tag_value("\\\\s") == "\\s"


def test_tag_without_value_maps_to_empty_string():
    msg = parse_irc_message("@flag;key=value CMD")
    assert msg.tags == {"flag": "", "key": "value"}
    assert msg.raw_tags == {"flag": "", "key": "value"}


def test_tag_value_may_contain_equals():
    msg = parse_irc_message("@key=a=b CMD")
    assert msg.tags["key"] == "a=b"


def test_trailing_parameter_rule():
    msg = parse_irc_message("CMD a b :c d e")
    assert msg.params == ("a", "b", "c d e")


def test_trailing_parameter_may_be_empty_or_start_with_colon():
    assert parse_irc_message("CMD a :").params == ("a", "")
    assert parse_irc_message("CMD ::-)").params == (":-)",)


def test_full_prefix():
    msg = parse_irc_message(":nick!user@host CMD")
    assert msg.prefix == Prefix(nickname="nick", user="user", host="host")
    assert msg.prefix.to_dict() == {"nickname": "nick", "user": "user", "host": "host"}


def test_host_only_prefix():
    msg = parse_irc_message(":host CMD")
    assert msg.prefix.to_dict() == {"host": "host"}


def test_prefix_without_host():
    msg = parse_irc_message(":nick!user CMD")
    assert msg.prefix.to_dict() == {"nickname": "nick", "user": "user"}


def test_prefix_user_at_host():
    msg = parse_irc_message(":user@host CMD")
    assert msg.prefix.to_dict() == {"user": "user", "host": "host"}


def test_no_prefix_and_no_tags():
    msg = parse_irc_message("PRIVMSG #abc :hello")
    assert msg.prefix is None
    assert msg.tags == {}
    assert msg.params == ("#abc", "hello")


def test_command_only_message():
    msg = parse_irc_message("PING")
    assert msg.command == "PING"
    assert msg.params == ()


def test_numeric_reply_with_middle_params():
    msg = parse_irc_message(":tmi.twitch.tv 001 viewer :Welcome, GLHF!")
    assert msg.command == "001"
    assert msg.params == ("viewer", "Welcome, GLHF!")


def test_trailing_crlf_is_ignored():
    msg = parse_irc_message("PING :tmi.twitch.tv\r\n")
    assert msg.params == ("tmi.twitch.tv",)


@pytest.mark.parametrize("line", ["", "@a=b", ":host", "@a=b :host", " CMD"])
def test_missing_command_is_malformed(line):
    with pytest.raises(MalformedMessage):
        parse_irc_message(line)


def test_structured_round_trip_preserves_fields():
    msg = parse_irc_message(PRIVMSG_LINE)
    record = msg.to_dict()
    assert record["command"] == "PRIVMSG"
    assert record["prefix"] == {"nickname": "bob", "user": "bob", "host": "bob.tmi.twitch.tv"}
    assert record["params"] == ["#abc", "hi there friends"]
    assert record["rawTags"]["system-msg"] == "bob\\shas\\ssubscribed\\:\\sthanks!"
    rebuilt = IRCMessage.from_dict(record)
    assert rebuilt == msg


def test_from_dict_defaults_missing_fields():
    msg = IRCMessage.from_dict({"command": "PING"})
    assert msg.prefix is None
    assert msg.tags == {}
    assert msg.raw_tags == {}
    assert msg.params == ()
    assert msg.to_dict()["prefix"] == {}


def test_from_dict_requires_command():
    with pytest.raises(MalformedMessage):
        IRCMessage.from_dict({"params": ["x"]})


def test_convenience_accessors():
    msg = parse_irc_message(PRIVMSG_LINE)
    assert msg.nickname == "bob"
    assert msg.channel == "abc"
    assert msg.text == "hi there friends"
    assert parse_irc_message("PING").text == ""


def test_message_is_immutable():
    msg = parse_irc_message("PING")
    with pytest.raises(AttributeError):
        msg.command = "PONG"  # type: ignore[misc]


def test_build_irc_line():
    assert build_irc_line("JOIN", "#abc") == "JOIN #abc"
    assert build_irc_line("CAP", "REQ", "twitch.tv/tags twitch.tv/commands") == (
        "CAP REQ :twitch.tv/tags twitch.tv/commands"
    )
    assert build_irc_line("PRIVMSG", "#abc", "") == "PRIVMSG #abc :"
    assert build_irc_line("PING") == "PING"


def test_build_irc_line_parses_back():
    line = build_irc_line("PRIVMSG", "#abc", "hello world")
    assert parse_irc_message(line).params == ("#abc", "hello world")


@pytest.mark.parametrize(
    "args",
    [
        ("PRIVMSG", "#abc", "two\r\nlines"),
        ("PRIVMSG", "has space", "x"),
        ("",),
        ("BAD CMD",),
    ],
)
def test_build_irc_line_rejects_invalid_input(args):
    with pytest.raises(ValueError):
        build_irc_line(*args)


def test_runs_of_spaces_before_command_are_tolerated():
    assert parse_irc_message(":tmi.twitch.tv  PING").command == "PING"
    msg = parse_irc_message("@id=1   :nick!user@host   PRIVMSG  #abc :hi")
    assert msg.command == "PRIVMSG"
    assert msg.prefix.nickname == "nick"
    assert msg.params == ("#abc", "hi")
