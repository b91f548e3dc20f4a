"""Unit tests for result collection and the summary table."""

import pytest

from common.models.result import ResultRecord, ResultStatus
from common.models.target import TargetList
from manager.core.collector import ResultCollector, parse_counter_summary, target_dir
from manager.storage.summary_table import SummaryTable
from tests.conftest import RUN_ID, make_ssh_client, target_files

OLDER_RUN = "20260117_090000"


def fleet(**overrides):
    """HOST-A and HOST-C healthy, HOST-B unreachable unless overridden."""
    clients = {
        "HOST-A": make_ssh_client(
            "HOST-A", dirs=[RUN_ID, "scratch"], files=target_files(counters={"HandleCount": 42.0}),
        ),
        "HOST-B": make_ssh_client("HOST-B", reachable=False),
        "HOST-C": make_ssh_client("HOST-C", dirs=[RUN_ID], files=target_files()),
    }
    clients.update(overrides)
    return clients


class TestParseCounterSummary:
    """Tests for summary.json parsing."""

    def test_numbers_only(self):
        text = '{"HandleCount": 42, "ProcessorTime": 12.5, "bad": "x", "flag": true}'

        assert parse_counter_summary(text) == {"HandleCount": 42.0, "ProcessorTime": 12.5}

    def test_invalid(self):
        assert parse_counter_summary(None) == {}
        assert parse_counter_summary("not json") == {}
        assert parse_counter_summary("[1, 2]") == {}


class TestSummaryTable:
    """Tests for the CSV summary table."""

    def test_upsert_replaces_rows(self, temp_dir):
        table = SummaryTable(temp_dir)
        first = ResultRecord(target="HOST-A", concurrency_index=1, run_id=RUN_ID, iops=1.0)
        second = ResultRecord(target="HOST-A", concurrency_index=1, run_id=RUN_ID, iops=2.0)

        table.upsert([first])
        table.upsert([second])

        rows = table.read()
        assert len(rows) == 1
        assert rows[0]["iops"] == "2.00"

    def test_rows_sorted_by_run_then_index(self, temp_dir):
        table = SummaryTable(temp_dir)
        table.upsert([
            ResultRecord(target="zeta", concurrency_index=2, run_id=RUN_ID),
            ResultRecord(target="alpha", concurrency_index=1, run_id=OLDER_RUN),
            ResultRecord(target="omega", concurrency_index=1, run_id=RUN_ID),
        ])

        assert [(r["run_id"], r["target"]) for r in table.read()] == [
            (OLDER_RUN, "alpha"), (RUN_ID, "omega"), (RUN_ID, "zeta"),
        ]

    def test_run_ids_and_rows_for(self, temp_dir):
        table = SummaryTable(temp_dir)
        table.upsert([
            ResultRecord(target="HOST-A", concurrency_index=1, run_id=OLDER_RUN),
            ResultRecord(target="HOST-A", concurrency_index=1, run_id=RUN_ID),
        ])

        assert table.run_ids() == [RUN_ID, OLDER_RUN]
        assert [r["run_id"] for r in table.rows_for()] == [RUN_ID]
        assert [r["run_id"] for r in table.rows_for(OLDER_RUN)] == [OLDER_RUN]

    def test_empty_table(self, temp_dir):
        table = SummaryTable(temp_dir)

        assert table.read() == []
        assert table.rows_for() == []


@pytest.mark.asyncio
class TestResultCollector:
    """Tests for collecting across the fleet."""

    async def test_partial_failure_reports_every_target(self, settings, targets, temp_dir):
        clients = fleet()
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(targets)

        assert [r.target for r in report.records] == ["HOST-A", "HOST-B", "HOST-C"]
        a, b, c = report.records
        assert a.status == ResultStatus.SUCCESS
        assert a.average_throughput_mbs == 123.45
        assert a.iops == 456.78
        assert a.counter_averages == {"HandleCount": 42.0}
        assert b.status == ResultStatus.FAILED
        assert b.error == "remote unreachable: Failed to connect to HOST-B: Connection timed out"
        assert b.run_id == RUN_ID
        assert c.status == ResultStatus.SUCCESS

        rows = SummaryTable(temp_dir / "out").read()
        assert len(rows) == 3
        assert [r["concurrency_index"] for r in rows] == ["1", "2", "3"]

    async def test_artifacts_are_copied_locally(self, settings, targets, temp_dir):
        clients = fleet()
        output = temp_dir / "out"

        await ResultCollector(settings, output, client_factory=lambda h: clients[h]).collect(targets)

        local = target_dir(output, RUN_ID, "HOST-A")
        assert (local / "generator_output.txt").exists()
        assert (local / "summary.json").exists()
        assert not target_dir(output, RUN_ID, "HOST-B").exists()

    async def test_recollection_is_idempotent(self, settings, targets, temp_dir):
        output = temp_dir / "out"

        clients = fleet()
        await ResultCollector(settings, output, client_factory=lambda h: clients[h]).collect(targets)
        first = (output / "results_summary.csv").read_text()
        clients = fleet()
        await ResultCollector(settings, output, client_factory=lambda h: clients[h]).collect(targets)
        second = (output / "results_summary.csv").read_text()

        assert first == second

    async def test_no_results_on_target(self, settings, targets, temp_dir):
        clients = fleet(**{"HOST-C": make_ssh_client("HOST-C", dirs=["scratch"])})
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(targets)

        c = report.records[2]
        assert c.status == ResultStatus.FAILED
        assert c.error == "no test results found"

    async def test_missing_generator_output(self, settings, targets, temp_dir):
        files = target_files()
        del files[f"/var/tmp/fleetstress/{RUN_ID}/generator_output.txt"]
        clients = fleet(**{"HOST-C": make_ssh_client("HOST-C", dirs=[RUN_ID], files=files)})
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(targets)

        assert report.records[2].status == ResultStatus.FAILED
        assert "generator_output.txt" in report.records[2].error

    async def test_unexpected_error(self, settings, targets, temp_dir):
        broken = make_ssh_client("HOST-C")
        broken.list_dir.side_effect = RuntimeError("permission denied\nmore")
        clients = fleet(**{"HOST-C": broken})
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(targets)

        assert report.records[2].status == ResultStatus.ERROR
        assert report.records[2].error == "permission denied"
        broken.close.assert_awaited_once()

    async def test_specific_run_id(self, settings, temp_dir):
        files = {**target_files(), **target_files(run_id=OLDER_RUN)}
        clients = {"HOST-A": make_ssh_client("HOST-A", dirs=[OLDER_RUN, RUN_ID], files=files)}
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(TargetList.from_names(["HOST-A"]), run_id=OLDER_RUN)

        assert report.records[0].run_id == OLDER_RUN
        assert report.records[0].succeeded

    async def test_requested_run_missing(self, settings, temp_dir):
        clients = {"HOST-A": make_ssh_client("HOST-A", dirs=[RUN_ID], files=target_files())}
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: clients[h])

        report = await collector.collect(TargetList.from_names(["HOST-A"]), run_id=OLDER_RUN)

        assert report.records[0].status == ResultStatus.FAILED
        assert report.records[0].run_id == OLDER_RUN

    async def test_history_collects_two_runs(self, settings, temp_dir):
        files = {**target_files(), **target_files(run_id=OLDER_RUN)}
        clients = {"HOST-A": make_ssh_client("HOST-A", dirs=[OLDER_RUN, RUN_ID], files=files)}
        output = temp_dir / "out"
        collector = ResultCollector(settings, output, client_factory=lambda h: clients[h])

        report = await collector.collect(TargetList.from_names(["HOST-A"]), history=2)

        outcome = report.outcomes[0]
        assert outcome.latest.run_id == RUN_ID
        assert [r.run_id for r in outcome.history] == [OLDER_RUN]
        assert SummaryTable(output).run_ids() == [RUN_ID, OLDER_RUN]

    async def test_invalid_arguments(self, settings, targets, temp_dir):
        collector = ResultCollector(settings, temp_dir / "out", client_factory=lambda h: make_ssh_client(h))

        with pytest.raises(ValueError):
            await collector.collect(targets, run_id="latest")
        with pytest.raises(ValueError):
            await collector.collect(targets, history=3)
