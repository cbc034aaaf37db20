"""
Test Command Line Interface
===========================

Smoke tests for the main entry point.
"""

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

import main
from rules.engine import IntentMatcher


class TestMain:
    """Tests for main.main."""

    def test_intents(self, capsys):
        """--intents lists every intent, fallback last."""
        assert main.main(["--intents"]) == 0

        lines = capsys.readouterr().out.strip().splitlines()
        assert "greeting_hi" in lines[0]
        assert "fallback" in lines[-1]

    def test_test_messages(self, capsys):
        """--test prints the intent alongside each reply."""
        assert main.main(["--test", "hello", "asdkjasd"]) == 0

        out = capsys.readouterr().out
        assert "[greeting_hi]" in out
        assert "[fallback]" in out

    def test_status(self, capsys):
        """--status shows the realm and rule summary."""
        assert main.main(["--status"]) == 0

        out = capsys.readouterr().out
        assert "Realm id:" in out
        assert "built-in" in out

    def test_bad_rules_file(self, tmp_path, capsys):
        """Errors are reported with a non-zero exit code."""
        assert main.main(["--intents", "--rules", str(tmp_path / "missing.yaml")]) == 1
        assert "Error" in capsys.readouterr().out

    def test_setup(self, tmp_path, capsys):
        """--setup writes config and rules into the config directory."""
        assert main.main(["--setup"]) == 0

        config_dir = tmp_path / "config"
        assert (config_dir / "config.yaml").exists()
        assert (config_dir / "rules.yaml").exists()

    def test_setup_honours_config_path(self, tmp_path, capsys):
        """--setup with --config writes into that file's directory."""
        target = tmp_path / "custom" / "config.yaml"

        assert main.main(["--setup", "--config", str(target)]) == 0

        assert target.exists()
        assert (target.parent / "rules.yaml").exists()
        assert not (tmp_path / "config" / "config.yaml").exists()

    def test_test_messages_match_once(self, monkeypatch, capsys):
        """Each --test message is matched once, on the reply actually sent."""
        calls = []
        original = IntentMatcher.match

        def counting_match(self, utterance):
            calls.append(utterance)
            return original(self, utterance)

        monkeypatch.setattr(IntentMatcher, "match", counting_match)

        assert main.main(["--test", "thanks", "bye"]) == 0

        assert calls == ["thanks", "bye"]
        out = capsys.readouterr().out
        assert "[thanks]" in out
        assert "[farewell]" in out

    def test_chat_loop(self, monkeypatch, capsys):
        """The interactive loop answers until /quit."""
        lines = iter(["hello", "/quit"])
        monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))

        assert main.main(["--chat"]) == 0
        assert "static>" in capsys.readouterr().out
