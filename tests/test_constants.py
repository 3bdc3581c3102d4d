from pipchat import constants


def test_env_override_is_prefixed(monkeypatch):
    monkeypatch.setenv("PIPCHAT_AUTH_MILESTONE_TIMEOUT", "12.5")
    assert constants._get_env_float("AUTH_MILESTONE_TIMEOUT", 30.0) == 12.5


def test_unset_or_blank_uses_default(monkeypatch):
    monkeypatch.delenv("PIPCHAT_CONTROL_PORT", raising=False)
    assert constants._get_env_int("CONTROL_PORT", 8765) == 8765
    monkeypatch.setenv("PIPCHAT_CONTROL_PORT", "  ")
    assert constants._get_env_int("CONTROL_PORT", 8765) == 8765


def test_invalid_value_warns_and_uses_default(monkeypatch, capsys):
    monkeypatch.setenv("PIPCHAT_UPSTREAM_CONNECT_ATTEMPTS", "three")
    assert constants._get_env_int("UPSTREAM_CONNECT_ATTEMPTS", 3) == 3
    assert "PIPCHAT_UPSTREAM_CONNECT_ATTEMPTS" in capsys.readouterr().out


def test_defaults():
    assert constants.TWITCH_IRC_WS_URL == "wss://irc-ws.chat.twitch.tv:443"
    assert constants.DEFAULT_OAUTH_SCOPE == "chat:read"
    assert constants.AUTHENTICATED_COMMAND == "GLOBALUSERSTATE"
