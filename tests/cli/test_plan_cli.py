"""
Tests for the ``day2ops plan`` commands, run through Typer's CliRunner
against a SQLite plan store in a temporary directory.
"""

import json

import pytest
from typer.testing import CliRunner

from day2ops.cli.app import app
from day2ops.core.hashing import plan_checksum
from day2ops.plan.codec import decode_output, encode_plan
from day2ops.plan.instructions import start_agent, stop_agent
from day2ops.plan.sql_store import SqlPlanStore
from day2ops.plan.store import PlanTarget

runner = CliRunner()

TARGET = PlanTarget("default", "restore-r1", "m0")


@pytest.fixture
def store_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'plans.db'}"


@pytest.fixture
def sql_store(store_url) -> SqlPlanStore:
    store = SqlPlanStore.from_url(store_url)
    store.write(TARGET, encode_plan([stop_agent(), start_agent()]))
    return store


def invoke(*args: str):
    return runner.invoke(app, ["plan", *args])


class TestRootApp:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.startswith("day2ops ")


class TestList:
    def test_json(self, sql_store, store_url):
        sql_store.grant(TARGET)
        result = invoke("list", "--store", store_url, "--json")

        assert result.exit_code == 0, result.stdout
        assert json.loads(result.stdout) == [
            {
                "namespace": "default",
                "plan": "restore-r1",
                "machine": "m0",
                "state": "pending",
                "granted": True,
            }
        ]

    def test_table(self, sql_store, store_url):
        result = invoke("list", "--store", store_url)
        assert result.exit_code == 0
        assert "restore-r1" in result.stdout

    def test_namespace_filter(self, sql_store, store_url):
        result = invoke("list", "--store", store_url, "--namespace", "ops", "--json")
        assert json.loads(result.stdout) == []


class TestShow:
    def test_json(self, sql_store, store_url):
        result = invoke("show", "restore-r1", "m0", "--store", store_url, "--json")

        assert result.exit_code == 0, result.stdout
        payload = json.loads(result.stdout)
        assert payload["target"] == "default/restore-r1/m0"
        assert payload["state"] == "pending"
        assert [i["name"] for i in payload["instructions"]] == ["shutdown", "start-rke2"]

    def test_missing_record(self, sql_store, store_url):
        result = invoke("show", "restore-r1", "m9", "--store", store_url)
        assert result.exit_code == 1
        assert "No plan record" in result.stdout


class TestChecksum:
    def test_prints_digest(self, sql_store, store_url):
        result = invoke("checksum", "restore-r1", "m0", "--store", store_url)
        assert result.exit_code == 0
        assert result.stdout.strip() == plan_checksum(encode_plan([stop_agent(), start_agent()]))


class TestGrants:
    def test_permit_and_revoke(self, sql_store, store_url):
        result = invoke("permit", "restore-r1", "m0", "--store", store_url)
        assert result.exit_code == 0
        assert "Permitted default/restore-r1/m0" in result.stdout
        assert sql_store.is_granted(TARGET)

        result = invoke("revoke", "restore-r1", "m0", "--store", store_url)
        assert result.exit_code == 0
        assert not sql_store.is_granted(TARGET)


class TestReport:
    def test_report_applied(self, sql_store, store_url):
        result = invoke(
            "report", "restore-r1", "m0", "--store", store_url,
            "--result", "shutdown=stopped", "--result", "start-rke2=started",
        )

        assert result.exit_code == 0, result.stdout
        assert "applied" in result.stdout
        record = sql_store.read(TARGET)
        assert record.applied_checksum == plan_checksum(record.plan)
        assert decode_output(record.applied_output) == {
            "shutdown": b"stopped",
            "start-rke2": b"started",
        }

        listed = json.loads(invoke("list", "--store", store_url, "--json").stdout)
        assert listed[0]["state"] == "applied"

    def test_report_failed(self, sql_store, store_url):
        result = invoke(
            "report", "restore-r1", "m0", "--store", store_url, "--failed",
            "-r", "shutdown=permission denied",
        )

        assert result.exit_code == 0
        record = sql_store.read(TARGET)
        assert record.failed_checksum == plan_checksum(record.plan)
        assert record.applied_checksum is None

        output = invoke("output", "restore-r1", "m0", "--store", store_url, "--failed", "--json")
        assert json.loads(output.stdout) == {"shutdown": "permission denied"}

    def test_bad_result_format(self, sql_store, store_url):
        result = invoke("report", "restore-r1", "m0", "--store", store_url, "-r", "novalue")
        assert result.exit_code == 1
        assert "NAME=TEXT" in result.stdout


class TestOutput:
    def test_no_output(self, sql_store, store_url):
        result = invoke("output", "restore-r1", "m0", "--store", store_url)
        assert result.exit_code == 0
        assert "No output" in result.stdout

    def test_malformed_output(self, sql_store, store_url):
        sql_store.report_applied(TARGET, "x", b"not gzip")
        result = invoke("output", "restore-r1", "m0", "--store", store_url)
        assert result.exit_code == 1
