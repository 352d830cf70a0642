import math
import threading

import numpy as np
import pytest

from config import GachaConfig, InvalidConstantsError
from monte_carlo_analyzer import (AggregateResult, MonteCarloAnalyzer, SimulationCancelled,
                                  budget_advice, run_batch)


def test_every_run_counted(config):
    result = run_batch(0, 0, 40, config, 3000, seed=1)
    assert result.run_count == 3000
    assert len(result.successes) + result.exhausted_count == 3000
    assert np.isclose(result.success_rate, len(result.successes) / 3000)


def test_histogram_matches_successes(config):
    result = run_batch(0, 0, 120, config, 3000, seed=2)
    assert len(result.histogram) == config.histogram_ceiling + 1
    assert sum(result.histogram) == len(result.successes)
    assert result.successes == sorted(result.successes)


def test_full_spark_budget_always_succeeds(config):
    """Budget equal to spark threshold caps every run"""
    result = run_batch(0, 0, 120, config, 20000, seed=2024)
    assert result.success_rate == 1.0
    assert result.exhausted_count == 0
    assert max(result.successes) <= 120
    assert 40 < result.mean_draws_to_featured < 100
    assert result.percentile_95 <= 120


def test_small_budget_success_rate(config):
    """Ten draws at 2% with a 50% featured share land roughly 1 - 0.99^10"""
    result = run_batch(0, 0, 10, config, 20000, seed=7)
    assert 0 < result.success_rate < 1
    assert 0.06 < result.success_rate < 0.14
    assert max(result.successes) <= 10


def test_success_rate_grows_with_budget(config):
    rates = [run_batch(0, 0, budget, config, 4000, seed=11).success_rate
             for budget in (10, 40, 70, 90, 120)]
    for smaller, larger in zip(rates, rates[1:]):
        assert larger >= smaller - 0.02
    assert rates[-1] > rates[0]


def test_zero_budget_all_exhausted(config):
    result = run_batch(0, 0, 0, config, 500, seed=3)
    assert result.successes == []
    assert result.success_rate == 0
    assert result.exhausted_count == 500
    assert math.isinf(result.mean_draws_to_featured)
    assert result.percentile_95 is None
    assert result.median is None
    assert result.histogram == [0] * 121


def test_spark_threshold_one_every_run_first_draw():
    result = run_batch(0, 0, 5, GachaConfig(spark_threshold=1), 200, seed=4)
    assert result.successes == [1] * 200
    assert result.histogram[0] == 200
    assert result.mean_draws_to_featured == 1


def test_histogram_overflow_bucket():
    result = AggregateResult.from_successes([1, 10, 11, 200], run_count=5, ceiling=10)
    assert result.histogram == [1, 0, 0, 0, 0, 0, 0, 0, 0, 1, 2]
    assert len(result.histogram) == 11
    assert result.histogram[10] == 2
    assert result.success_rate == 0.8
    assert result.mean_draws_to_featured == 55.5


def test_percentile_lookup():
    result = AggregateResult.from_successes(list(range(21, 0, -1)), run_count=21, ceiling=120)
    assert result.successes == list(range(1, 22))
    # floor(21 * 0.95) = 19
    assert result.percentile_95 == 20
    assert result.median == 11
    assert result.percentile(0) == 1
    assert result.percentile(1.0) is None


def test_percentile_single_success():
    result = AggregateResult.from_successes([5], run_count=1, ceiling=10)
    assert result.percentile_95 == 5


def test_seeded_batch_is_reproducible(config):
    first = run_batch(10, 20, 60, config, 1500, seed=99)
    second = run_batch(10, 20, 60, config, 1500, seed=99)
    assert first == second


def test_parallel_matches_serial(config):
    serial = MonteCarloAnalyzer(config, iterations=1200, workers=1, seed=5, chunk_size=300)
    parallel = MonteCarloAnalyzer(config, iterations=1200, workers=2, seed=5, chunk_size=300)
    assert serial.run_batch(0, 0, 80) == parallel.run_batch(0, 0, 80)


def test_uneven_chunks(config):
    analyzer = MonteCarloAnalyzer(config, iterations=1050, chunk_size=500)
    assert [count for _, count in analyzer._plan_chunks()] == [500, 500, 50]
    result = analyzer.run_batch(0, 0, 30)
    assert result.run_count == 1050
    assert len(result.successes) + result.exhausted_count == 1050


def test_cancelled_serial_batch(config):
    event = threading.Event()
    event.set()
    with pytest.raises(SimulationCancelled):
        run_batch(0, 0, 120, config, 1000, cancel_event=event)


def test_cancelled_parallel_batch(config):
    event = threading.Event()
    event.set()
    analyzer = MonteCarloAnalyzer(config, iterations=1000, workers=2, chunk_size=100)
    with pytest.raises(SimulationCancelled):
        analyzer.run_batch(0, 0, 120, cancel_event=event)


def test_unset_cancel_event_runs_to_completion(config):
    result = run_batch(0, 0, 120, config, 300, seed=6, cancel_event=threading.Event())
    assert result.run_count == 300


def test_invalid_inputs_fail_fast(config):
    with pytest.raises(InvalidConstantsError):
        run_batch(0, 0, 10, GachaConfig(base_rate=1.5), 100)
    with pytest.raises(InvalidConstantsError):
        run_batch(0, 0, 10, GachaConfig(spark_threshold=0), 100)
    with pytest.raises(InvalidConstantsError):
        run_batch(-1, 0, 10, config, 100)
    with pytest.raises(InvalidConstantsError):
        run_batch(0, 0, 10, config, 0)


def test_invalid_worker_count(config):
    with pytest.raises(ValueError):
        MonteCarloAnalyzer(config, workers=0)


def test_print_results(config, capsys):
    analyzer = MonteCarloAnalyzer(config, iterations=500, seed=8)
    analyzer.print_results(analyzer.run_batch(0, 0, 120), 120)
    out = capsys.readouterr().out
    assert "模拟次数: 500" in out
    assert "95%分位数" in out


def test_print_results_without_successes(config, capsys):
    analyzer = MonteCarloAnalyzer(config, iterations=10)
    analyzer.print_results(analyzer.run_batch(0, 0, 0), 0)
    assert "不可用" in capsys.readouterr().out


def test_budget_advice(config):
    advice = budget_advice(0, 0, 50, config)
    assert advice[0] == "距离必出6星还差 32 抽"
    assert "大保底计数不会继承到下期" in advice[1]

    advice = budget_advice(0, 0, 100, config)
    assert advice[0] == "距离大保底还差 20 抽"

    assert budget_advice(0, 0, 120, config) == []
    assert budget_advice(82, 60, 60, config) == []


def test_batch_accepts_numpy_counters(config):
    result = run_batch(np.int64(0), np.int64(0), np.int64(10), config, np.int64(10), seed=12)
    assert result.run_count == 10
    assert len(result.successes) + result.exhausted_count == 10


def test_tiny_increment_budget_advice():
    advice = budget_advice(0, 0, 50, GachaConfig(soft_pity_increment=1e-9))
    assert advice[0].startswith("距离必出6星还差")
