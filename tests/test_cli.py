"""Tests for the command-line interface."""

import json

import httpx
from typer.testing import CliRunner

from mongo_extract import __version__
from mongo_extract.cli import app

runner = CliRunner()


class TestCli:
    """Test commands that need no database."""

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_plan(self):
        result = runner.invoke(
            app,
            ["plan", "--from", "2024-01-01T00:00:00.000Z", "--to", "2024-01-03T00:00:00.000Z"],
        )

        assert result.exit_code == 0
        assert "2024-01-03T00:00:00.000Z" in result.output
        assert "3 windows" in result.output

    def test_plan_rejects_zero_range(self):
        result = runner.invoke(app, ["plan", "--range", "0"])
        assert result.exit_code == 1

    def test_enrich(self, temp_dir, monkeypatch):
        source = temp_dir / "orders.json"
        source.write_text(json.dumps([{"address": "1 Trang Tien"}]))
        target = temp_dir / "enriched.json"

        body = {
            "payload": {
                "province_detected": {"name": "Ha Noi", "code": "01"},
                "district_detected": {"name": "Hoan Kiem", "code": "002"},
                "ward_detected": {"name": "Trang Tien", "code": "00070"},
            }
        }
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
        real_client = httpx.Client

        def client_factory(*args, **kwargs):
            kwargs["transport"] = transport
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "Client", client_factory)

        result = runner.invoke(app, ["enrich", str(source), "--output", str(target)])

        assert result.exit_code == 0
        records = json.loads(target.read_text())
        assert records[0]["province"] == {"name": "Ha Noi", "code": "01"}

    def test_enrich_missing_file(self, temp_dir):
        result = runner.invoke(app, ["enrich", str(temp_dir / "missing.json")])
        assert result.exit_code == 1

    def test_run_with_bad_config(self, temp_dir):
        path = temp_dir / "settings.yaml"
        path.write_text("query:\n  limit: 0\n")

        result = runner.invoke(app, ["run", "--config", str(path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
