"""Tests for the command-line interface."""

import csv
import json

import pytest
from click.testing import CliRunner

from conftest import MS, FakeEngine
from dns_speedtest import cli


@pytest.fixture
def engine(monkeypatch):
    fake = FakeEngine({"Cloudflare": 12 * MS, "Google": 30 * MS, "Custom": None})
    monkeypatch.setattr(cli, "DNSQueryEngine", lambda: fake)
    return fake


def invoke(*args):
    return CliRunner().invoke(cli.main, list(args))


def test_plain_report_is_ranked(engine):
    result = invoke("run", "-r", "google", "-r", "cloudflare", "-n", "1", "--plain", "-q")

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0] == "DNS Provider Latency Results:"
    assert lines[2].startswith("Cloudflare")
    assert lines[2].endswith("(1.1.1.1): 12.000ms")
    assert lines[3].startswith("Google")


def test_custom_provider_failure_is_reported(engine):
    result = invoke("run", "-r", "cloudflare", "-c", "10.0.0.53", "-n", "1", "--plain", "-q")

    assert result.exit_code == 0, result.output
    assert "Custom               (10.0.0.53): Timeout or Error" in result.output


def test_json_output(engine):
    result = invoke("run", "-r", "cloudflare", "-n", "2", "--json", "-q")

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["winner"]["name"] == "Cloudflare"
    assert data["providers"][0]["probes"]["total"] == 2 * len(cli.DEFAULT_DOMAINS)


def test_repeat_prints_history(engine):
    result = invoke("run", "-r", "cloudflare", "-n", "1", "--repeat", "2", "--plain")

    assert result.exit_code == 0, result.output
    assert "Test History:" in result.output
    assert result.output.count("Test Run: ") == 2


def test_sequential_probes_use_every_domain(engine):
    result = invoke("run", "-r", "cloudflare", "-n", "1", "--sequential", "-q")

    assert result.exit_code == 0, result.output
    assert [domain for _, domain in engine.calls] == list(cli.DEFAULT_DOMAINS)


def test_csv_output_file(engine, tmp_path):
    path = tmp_path / "results.csv"

    result = invoke("run", "-r", "cloudflare", "-n", "1", "-o", str(path), "-q")

    assert result.exit_code == 0, result.output
    rows = list(csv.reader(path.open()))
    assert rows[0][0] == "Provider"
    assert rows[1][:2] == ["Cloudflare", "1.1.1.1"]


def test_domains_file(engine, tmp_path):
    path = tmp_path / "domains.txt"
    path.write_text("one.example\ntwo.example\n")

    result = invoke("run", "-r", "cloudflare", "-n", "1", "--domains-file", str(path), "-q")

    assert result.exit_code == 0, result.output
    assert sorted(domain for _, domain in engine.calls) == ["one.example", "two.example"]


def test_unknown_provider_exits_with_error(engine):
    result = invoke("run", "-r", "nonexistent", "-q")

    assert result.exit_code == 1
    assert engine.calls == []


def test_out_of_range_options_are_rejected(engine):
    assert invoke("run", "-n", "11").exit_code == 2
    assert invoke("run", "--timeout", "0.5").exit_code == 2


def test_list_available():
    result = invoke("list-available")

    assert result.exit_code == 0
    assert "Default providers:" in result.output
    assert "www.google.com" in result.output


def test_export_writes_csv_to_documents(engine, monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))

    result = invoke("run", "-r", "cloudflare", "-n", "1", "--export")

    assert result.exit_code == 0, result.output
    exported = list((tmp_path / "Documents").glob("dns_test_results_*.csv"))
    assert len(exported) == 1
    assert f"Results exported to {exported[0]}" in result.output
    rows = list(csv.reader(exported[0].open()))
    assert rows[1][:2] == ["Cloudflare", "1.1.1.1"]


def test_without_provider_options_defaults_are_tested(engine):
    result = invoke("run", "-n", "1", "--plain", "-q")

    assert result.exit_code == 0, result.output
    assert {name for name, _ in engine.calls} == {"Cloudflare", "Google", "Quad9"}
