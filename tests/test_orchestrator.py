"""Tests for the run orchestrator: fan-out, ranking, progress and run guard."""

import asyncio

import pytest

from conftest import MS, FakeEngine, RecordingSink
from dns_speedtest import runner
from dns_speedtest.history import RunHistory
from dns_speedtest.models import Provider, RunConfig, RunState
from dns_speedtest.output import REPORT_HEADER


def make_orchestrator(engine, domains, sink=None, history=None):
    return runner.TestOrchestrator(
        catalog={"a": Provider("A", "1.1.1.1"), "b": Provider("B", "9.9.9.9")},
        domains=domains,
        engine=engine,
        sink=sink,
        history=history,
    )


@pytest.mark.asyncio
async def test_end_to_end_ranking(provider_a, provider_b, domains, sink):
    engine = FakeEngine({"A": 50 * MS, "B": None})
    orchestrator = make_orchestrator(engine, domains, sink)
    config = RunConfig(tests_per_domain=1)

    results = await orchestrator.run_all([provider_b, provider_a], config)

    assert [r.provider.name for r in results] == ["A", "B"]
    assert results[0].latency_ns == 50 * MS
    assert results[0].success is True
    assert results[1].latency_ns == config.timeout_ns
    assert results[1].success is False
    assert all(r.total_probes == 2 for r in results)


@pytest.mark.asyncio
async def test_results_share_the_run_start_timestamp(provider_a, provider_b, domains):
    orchestrator = make_orchestrator(FakeEngine({"A": MS, "B": 2 * MS}, delay=0.01), domains)

    results = await orchestrator.run_all([provider_a, provider_b], RunConfig(tests_per_domain=2))

    assert len({r.timestamp for r in results}) == 1


@pytest.mark.asyncio
async def test_ranking_is_non_decreasing_and_failures_last(domains):
    behaviours = {"P1": 30 * MS, "P2": None, "P3": 10 * MS, "P4": 20 * MS, "P5": None}
    providers = [Provider(name, f"10.0.0.{i}") for i, name in enumerate(behaviours)]
    orchestrator = make_orchestrator(FakeEngine(behaviours), domains)

    results = await orchestrator.run_all(providers, RunConfig(tests_per_domain=1))

    latencies = [r.latency_ns for r in results]
    assert latencies == sorted(latencies)
    assert [r.provider.name for r in results] == ["P3", "P4", "P1", "P2", "P5"]


@pytest.mark.asyncio
async def test_ties_keep_selection_order(domains):
    providers = [Provider(name, "10.0.0.1") for name in ("Z", "Y", "X")]
    orchestrator = make_orchestrator(FakeEngine({"Z": 5, "Y": 5, "X": 5}), domains)

    first = await orchestrator.run_all(providers, RunConfig(tests_per_domain=1))
    second = await orchestrator.run_all(providers, RunConfig(tests_per_domain=1))

    assert [r.provider.name for r in first] == ["Z", "Y", "X"]
    assert [r.provider.name for r in second] == ["Z", "Y", "X"]


@pytest.mark.asyncio
async def test_progress_ticks_once_per_probe(provider_a, provider_b, domains, sink):
    orchestrator = make_orchestrator(FakeEngine({"A": MS, "B": None}), domains, sink)
    config = RunConfig(tests_per_domain=3)

    await orchestrator.run_all([provider_a, provider_b], config)

    expected = 2 * len(domains) * 3
    assert orchestrator.count_tests(2, config) == expected
    assert sink.totals == [expected]
    assert sink.ticks == expected
    assert orchestrator.completed_tests == expected
    assert orchestrator.progress == 1.0


@pytest.mark.asyncio
async def test_progress_is_monotonic(provider_a, provider_b, domains):
    seen = []

    class ProgressSink(RecordingSink):
        def on_progress(self):
            super().on_progress()
            seen.append(orchestrator.progress)

    orchestrator = make_orchestrator(
        FakeEngine({"A": MS, "B": MS}, delay=0.001), domains, ProgressSink()
    )
    await orchestrator.run_all([provider_a, provider_b], RunConfig(tests_per_domain=2))

    assert seen == sorted(seen)
    assert all(0.0 < p <= 1.0 for p in seen)
    assert seen[-1] == 1.0


@pytest.mark.asyncio
async def test_final_report_is_published(provider_a, provider_b, domains, sink):
    orchestrator = make_orchestrator(FakeEngine({"A": 50 * MS, "B": None}), domains, sink)

    results = await orchestrator.run_all([provider_a, provider_b], RunConfig(tests_per_domain=1))

    assert len(sink.completed) == 1
    published, report = sink.completed[0]
    assert published == results
    assert report.startswith(REPORT_HEADER)
    assert "A                    (1.1.1.1): 50.000ms" in report
    assert "B                    (9.9.9.9): Timeout or Error" in report
    assert sink.statuses[-1] == runner.COMPLETED_MESSAGE


@pytest.mark.asyncio
async def test_empty_selection_reports_status_and_does_nothing(domains, sink):
    engine = FakeEngine({})
    history = RunHistory()
    orchestrator = make_orchestrator(engine, domains, sink, history)

    result = await orchestrator.run_all([], RunConfig())

    assert result is None
    assert sink.statuses == [runner.NO_SELECTION_MESSAGE]
    assert engine.calls == []
    assert len(history) == 0
    assert orchestrator.state == RunState.IDLE


@pytest.mark.asyncio
async def test_second_run_while_running_is_rejected(provider_a, domains):
    first_sink, second_sink = RecordingSink(), RecordingSink()
    engine = FakeEngine({"A": MS}, delay=0.05)
    orchestrator = make_orchestrator(engine, domains)
    config = RunConfig(tests_per_domain=1)

    task = orchestrator.start([provider_a], config, first_sink)
    await asyncio.sleep(0)
    assert orchestrator.state == RunState.RUNNING

    rejected = await orchestrator.run_all([provider_a], config, second_sink)
    results = await task

    assert rejected is None
    assert second_sink.statuses == [runner.ALREADY_RUNNING_MESSAGE]
    assert len(results) == 1
    assert first_sink.ticks == len(domains)
    assert len(engine.calls) == len(domains)
    assert orchestrator.state == RunState.IDLE


@pytest.mark.asyncio
async def test_runs_are_appended_to_history(provider_a, domains):
    history = RunHistory()
    orchestrator = make_orchestrator(FakeEngine({"A": MS}), domains, history=history)

    for _ in range(3):
        await orchestrator.run_all([provider_a], RunConfig(tests_per_domain=1))

    assert len(history) == 3
    assert history.latest().results[0].provider.name == "A"


@pytest.mark.asyncio
async def test_cancel_stops_pending_probes(provider_a, domains, sink):
    engine = FakeEngine({"A": MS}, delay=0.02)
    orchestrator = make_orchestrator(engine, domains, sink)

    task = orchestrator.start([provider_a], RunConfig(tests_per_domain=5, parallel_tests=False))
    await asyncio.sleep(0.03)
    assert orchestrator.cancel() is True
    results = await task

    assert len(engine.calls) < 5 * len(domains)
    assert results[0].total_probes == 5 * len(domains)
    assert orchestrator.cancel() is False


@pytest.mark.asyncio
async def test_providers_run_concurrently(domains):
    providers = [Provider(f"P{i}", f"10.0.0.{i}") for i in range(4)]
    engine = FakeEngine({p.name: MS for p in providers}, delay=0.01)
    orchestrator = make_orchestrator(engine, domains)

    await orchestrator.run_all(providers, RunConfig(tests_per_domain=1, parallel_tests=False))

    assert engine.max_in_flight == len(providers)


def test_resolve_selection_uses_catalog(domains):
    orchestrator = make_orchestrator(FakeEngine({}), domains)

    assert [p.name for p in orchestrator.resolve_selection(["B", "a"])] == ["B", "A"]
    with pytest.raises(ValueError):
        orchestrator.resolve_selection(["missing"])


def test_catalog_snapshot_is_read_only(domains):
    orchestrator = make_orchestrator(FakeEngine({}), domains)
    with pytest.raises(TypeError):
        orchestrator.catalog["c"] = Provider("C", "1.2.3.4")


@pytest.mark.asyncio
async def test_start_while_running_returns_no_task(provider_a, domains):
    engine = FakeEngine({"A": MS}, delay=0.02)
    orchestrator = make_orchestrator(engine, domains)
    rejected_sink = RecordingSink()

    owner = orchestrator.start([provider_a], RunConfig(tests_per_domain=2))
    rejected = orchestrator.start([provider_a], RunConfig(), rejected_sink)
    results = await owner

    assert rejected is None
    assert rejected_sink.statuses == [runner.ALREADY_RUNNING_MESSAGE]
    assert results[0].successful_probes == 2 * len(domains)
    assert len(engine.calls) == 2 * len(domains)


@pytest.mark.asyncio
async def test_failing_sink_stops_every_provider(domains):
    class BrokenSink(RecordingSink):
        def on_progress(self):
            super().on_progress()
            if self.ticks == 2:
                raise RuntimeError("sink broke")

    providers = [Provider(f"P{i}", f"10.0.0.{i}") for i in range(3)]
    engine = FakeEngine({p.name: MS for p in providers}, delay=0.01)
    orchestrator = make_orchestrator(engine, domains, BrokenSink())

    with pytest.raises(RuntimeError):
        await orchestrator.run_all(
            providers, RunConfig(tests_per_domain=3, parallel_tests=False)
        )
    calls_at_failure = len(engine.calls)
    await asyncio.sleep(0.05)

    assert len(engine.calls) == calls_at_failure
    assert engine.in_flight == 0
    assert orchestrator.state == RunState.IDLE

    results = await orchestrator.run_all(providers, RunConfig(tests_per_domain=1))
    assert orchestrator.completed_tests == orchestrator.total_tests == 3 * len(domains)
    assert all(r.success for r in results)
