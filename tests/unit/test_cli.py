"""
Unit tests for the CLI entry points that do not need a terminal.
"""

import asyncio
import json

import httpx
import pytest

from wineflow import cli
from wineflow.cli import _show_recommendation, format_recommendation, main
from wineflow.config import Settings
from wineflow.engine import flow_store
from wineflow.lookup.wine_service import Recommendation, WineService


class TestValidateCommand:
    """Test `wineflow validate`."""

    def test_validate_bundled_flow(self, bundled_flow_path, capsys):
        code = main(["--flow-file", str(bundled_flow_path), "--strict-references", "validate"])

        out = capsys.readouterr().out
        assert code == 0
        assert "root=mood" in out
        assert "questions=7" in out

    def test_validate_reports_bad_flow(self, tmp_path, mock_flow_document, capsys):
        mock_flow_document["nodes"]["q2"]["options"] = []
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(mock_flow_document), encoding="utf-8")

        code = main(["--flow-file", str(path), "validate"])

        out = capsys.readouterr().out
        assert code == 2
        assert "empty_options" in out
        assert "q2" in out

    def test_validate_reports_unreadable_file(self, tmp_path, capsys):
        path = tmp_path / "flow.json"
        path.write_bytes(b"\xff\xfe")

        code = main(["--flow-file", str(path), "validate"])

        assert code == 2
        assert "not valid UTF-8" in capsys.readouterr().out

    def test_strict_references_flag(self, tmp_path, mock_flow_document, capsys):
        mock_flow_document["nodes"]["q2"]["options"][0]["nextId"] = "ghost"
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(mock_flow_document), encoding="utf-8")

        assert main(["--flow-file", str(path), "validate"]) == 0
        assert main(["--flow-file", str(path), "--strict-references", "validate"]) == 2


class TestFormatRecommendation:
    """Test recommendation text."""

    def test_plain(self):
        rec = Recommendation(name="Chinon Rouge", source="Corner Shop", price=12.5)

        assert format_recommendation(rec) == "Helena recommends Chinon Rouge from Corner Shop for £12.50"

    def test_alternative(self):
        rec = Recommendation(name="Grand Cru", price=35.0, is_alternative=True)

        text = format_recommendation(rec)

        assert text.splitlines()[0] == "But we're not made of money, so try this one"
        assert text.endswith("Grand Cru for £35.00")


class TestShowRecommendation:
    """Test the result lookup shown under a wine view."""

    def test_prints_recommendation(self, fake_supabase_factory, make_wine_row, capsys):
        client = fake_supabase_factory({"chinon": [make_wine_row("Chinon Rouge", 12.5, 4.0)]})
        service = WineService(client, Settings(supabase_url="", supabase_key=""))
        loop = asyncio.new_event_loop()
        try:
            _show_recommendation(service, loop, {"kind": "wine", "lookup_key": "chinon"})
        finally:
            loop.close()

        out = capsys.readouterr().out
        assert "Helena recommends Chinon Rouge" in out
        assert "'r' to start again" in out

    def test_unreachable_catalogue_keeps_session_going(self, fake_supabase_factory, capsys):
        client = fake_supabase_factory({}, exc=httpx.ConnectError("All connection attempts failed"))
        service = WineService(client, Settings(supabase_url="", supabase_key=""))
        loop = asyncio.new_event_loop()
        try:
            _show_recommendation(service, loop, {"kind": "wine", "lookup_key": "chinon"})
        finally:
            loop.close()

        out = capsys.readouterr().out
        assert "Couldn't load wine details" in out


class TestRunCommand:
    """Test `wineflow run` against scripted input."""

    @pytest.fixture
    def scripted_input(self, monkeypatch):
        def _script(lines):
            pending = iter(lines)

            def fake_input(prompt=""):
                try:
                    return next(pending)
                except StopIteration:
                    raise EOFError

            monkeypatch.setattr("builtins.input", fake_input)

        return _script

    def test_one_catalogue_client_per_run(
        self, tmp_path, mock_flow_document, monkeypatch, scripted_input, fake_supabase_factory, make_wine_row, capsys
    ):
        monkeypatch.setattr(flow_store, "_flow_graph", None)
        path = tmp_path / "flow.json"
        path.write_text(json.dumps(mock_flow_document), encoding="utf-8")

        client = fake_supabase_factory({"burgundy": [make_wine_row("Meursault", 18.0, 4.5)]})
        created = []

        async def fake_create(settings):
            created.append(settings)
            return WineService(client, Settings(supabase_url="", supabase_key=""))

        monkeypatch.setattr(cli, "create_wine_service", fake_create)
        # q1 -> q2 -> r1, back to q2, r1 again, then EOF
        scripted_input(["1", "1", "b", "1"])

        code = main(["--flow-file", str(path), "run"])

        out = capsys.readouterr().out
        assert code == 0
        assert len(created) == 1
        assert out.count("Helena recommends Meursault") == 2
