"""
Tests for the console entry point
"""

from unittest.mock import Mock

import main
from teamchat.core import messages


class TestMain:
    def setup_method(self):
        self.configure_logging = Mock()

    def test_usage_without_project_id(self, capsys):
        assert main.main(["main.py"]) == 2
        assert "usage" in capsys.readouterr().out

    def test_missing_access_token_prints_user_message(self, monkeypatch, capsys):
        monkeypatch.setattr(main, "configure_logging", self.configure_logging)
        monkeypatch.setattr(main.settings, "ACCESS_TOKEN", None)

        assert main.main(["main.py", "p1"]) == 1
        assert capsys.readouterr().out.strip() == f"!! {messages.CREDENTIALS_MISSING}"

    def test_undecodable_access_token_prints_user_message(self, monkeypatch, capsys):
        monkeypatch.setattr(main, "configure_logging", self.configure_logging)
        monkeypatch.setattr(main.settings, "ACCESS_TOKEN", "not-a-jwt")

        assert main.main(["main.py", "p1"]) == 1
        assert capsys.readouterr().out.strip() == f"!! {messages.CREDENTIALS_INVALID}"
