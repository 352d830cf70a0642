"""
蒙特卡洛分析器
"""
import logging
import math
import multiprocessing as mp
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from config import GachaConfig, validate_start_state
from simulator_core import GachaSimulator, guaranteed_rare_pity

logger = logging.getLogger(__name__)


class SimulationCancelled(RuntimeError):
    """调用方中途放弃了本批模拟"""


@dataclass
class AggregateResult:
    """一批模拟的汇总结果"""
    run_count: int
    successes: List[int]  # 升序，出UP所用抽数
    success_rate: float
    mean_draws_to_featured: float  # 无成功记录时为 math.inf
    histogram: List[int] = field(default_factory=list)  # 下标 k-1 对应第k抽，最后一格为溢出

    @classmethod
    def from_successes(cls, successes, run_count: int, ceiling: int) -> 'AggregateResult':
        ordered = sorted(int(p) for p in successes)
        n = len(ordered)

        if n == 0:
            return cls(run_count=run_count, successes=[], success_rate=0.0,
                       mean_draws_to_featured=math.inf, histogram=[0] * (ceiling + 1))

        # 超过显示上限的抽数全部计入溢出桶
        counts = np.bincount(np.minimum(ordered, ceiling + 1), minlength=ceiling + 2)[1:]
        return cls(
            run_count=run_count,
            successes=ordered,
            success_rate=n / run_count,
            mean_draws_to_featured=sum(ordered) / n,
            histogram=[int(c) for c in counts],
        )

    @property
    def exhausted_count(self) -> int:
        return self.run_count - len(self.successes)

    def percentile(self, p: float) -> Optional[int]:
        """取排序后下标 floor(n * p) 的值，越界返回 None"""
        index = math.floor(len(self.successes) * p)
        if 0 <= index < len(self.successes):
            return self.successes[index]
        return None

    @property
    def percentile_95(self) -> Optional[int]:
        return self.percentile(0.95)

    @property
    def median(self) -> Optional[int]:
        return self.percentile(0.5)


def _run_chunk(simulator, starting_pity, starting_spark, draw_budget, count, cancel_event=None):
    successes = []
    for _ in range(count):
        # 只在两次模拟之间检查取消，不会留下半途的状态
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled("模拟已被取消")
        result = simulator.simulate_run(starting_pity, starting_spark, draw_budget)
        if result is not None:
            successes.append(result)
    return successes


def _simulate_chunk(args):
    """子进程入口，每个分块使用独立的随机流"""
    config, seed_seq, starting_pity, starting_spark, draw_budget, count = args
    simulator = GachaSimulator(config, np.random.default_rng(seed_seq))
    return _run_chunk(simulator, starting_pity, starting_spark, draw_budget, count)


class MonteCarloAnalyzer:
    """蒙特卡洛分析器

    iterations 次模拟按 chunk_size 分块，每块由 SeedSequence 派生独立随机流，
    因此同一 seed 的结果与 workers 数量无关
    """

    def __init__(self, config: GachaConfig, iterations: int = 10000, workers: int = 1,
                 seed: Optional[int] = None, chunk_size: int = 1000):
        config.validate()
        if workers < 1:
            raise ValueError(f"workers 必须大于0, 当前为 {workers}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size 必须大于0, 当前为 {chunk_size}")
        self.config = config
        self.iterations = iterations
        self.workers = workers
        self.seed = seed
        self.chunk_size = chunk_size

    def _plan_chunks(self):
        sizes = [self.chunk_size] * (self.iterations // self.chunk_size)
        if self.iterations % self.chunk_size:
            sizes.append(self.iterations % self.chunk_size)
        seeds = np.random.SeedSequence(self.seed).spawn(len(sizes))
        return list(zip(seeds, sizes))

    def run_batch(self, starting_pity: int = 0, starting_spark: int = 0, draw_budget: int = 0,
                  cancel_event=None) -> AggregateResult:
        """
        模拟 iterations 次并汇总
        cancel_event: 任何带 is_set() 的对象（如 threading.Event），置位后抛出 SimulationCancelled

        单进程时每次模拟前检查取消；多进程时只在每个分块返回后检查，
        取消最多要等一个 chunk_size 的模拟跑完。需要更快响应取消时调小 chunk_size，
        不按 workers 自动调整，以保证同一 seed 在不同 workers 下结果一致
        """
        validate_start_state(starting_pity, starting_spark, draw_budget, self.iterations)
        # numpy 整数转成 int，避免 list * np.int64 被广播成数组
        self.iterations = int(self.iterations)
        starting_pity, starting_spark, draw_budget = int(starting_pity), int(starting_spark), int(draw_budget)

        chunks = self._plan_chunks()
        logger.info("正在模拟，共 %d 次，%d 个分块，%d 个进程...",
                    self.iterations, len(chunks), self.workers)

        if self.workers == 1:
            successes = self._run_serial(chunks, starting_pity, starting_spark, draw_budget, cancel_event)
        else:
            successes = self._run_parallel(chunks, starting_pity, starting_spark, draw_budget, cancel_event)

        result = AggregateResult.from_successes(successes, self.iterations, self.config.histogram_ceiling)
        logger.info("模拟完成: 成功率 %.2f%%", result.success_rate * 100)
        return result

    def _run_serial(self, chunks, starting_pity, starting_spark, draw_budget, cancel_event):
        successes = []
        done = 0
        for seed_seq, count in chunks:
            simulator = GachaSimulator(self.config, np.random.default_rng(seed_seq))
            successes.extend(_run_chunk(simulator, starting_pity, starting_spark, draw_budget,
                                        count, cancel_event))
            done += count
            logger.info("进度: %d/%d", done, self.iterations)
        return successes

    def _run_parallel(self, chunks, starting_pity, starting_spark, draw_budget, cancel_event):
        tasks = [(self.config, seed_seq, starting_pity, starting_spark, draw_budget, count)
                 for seed_seq, count in chunks]
        successes = []
        done = 0
        # 退出 with 时 Pool 被 terminate，取消后未完成的分块直接丢弃
        with mp.Pool(processes=self.workers) as pool:
            for (_, count), chunk_successes in zip(chunks, pool.imap(_simulate_chunk, tasks)):
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("模拟在 %d/%d 处被取消", done, self.iterations)
                    raise SimulationCancelled("模拟已被取消")
                successes.extend(chunk_successes)
                done += count
                logger.info("进度: %d/%d", done, self.iterations)
        return successes

    def print_results(self, result: AggregateResult, draw_budget: int):
        """打印模拟结果"""
        print("\n" + "=" * 60)
        print("【模拟结果】")
        print("=" * 60)
        print(f"\n模拟次数: {result.run_count}")
        print(f"抽数预算: {draw_budget} 抽")
        print(f"预算内出UP概率: {result.success_rate * 100:.1f}%")
        print(f"预算耗尽次数: {result.exhausted_count}")

        if not result.successes:
            print("\n预算内没有任何一次模拟出UP，平均抽数与分位数不可用")
            print("\n" + "=" * 60 + "\n")
            return

        print(f"\n出UP所需抽数:")
        print(f"  平均值: {result.mean_draws_to_featured:.2f} 抽")
        print(f"  中位数: {result.median} 抽")
        print(f"  最小值: {result.successes[0]} 抽")
        print(f"  最大值: {result.successes[-1]} 抽")
        print(f"  25%分位数: {result.percentile(0.25)} 抽")
        print(f"  75%分位数: {result.percentile(0.75)} 抽")
        print(f"  90%分位数: {result.percentile(0.9)} 抽")
        print(f"  95%分位数: {result.percentile_95} 抽")

        print("\n" + "=" * 60 + "\n")


def run_batch(starting_pity: int, starting_spark: int, draw_budget: int, constants: GachaConfig,
              run_count: int, seed: Optional[int] = None, workers: int = 1,
              cancel_event=None) -> AggregateResult:
    """模拟 run_count 次并汇总为 AggregateResult"""
    analyzer = MonteCarloAnalyzer(constants, iterations=run_count, workers=workers, seed=seed)
    return analyzer.run_batch(starting_pity, starting_spark, draw_budget, cancel_event)


def budget_advice(starting_pity: int, starting_spark: int, draw_budget: int,
                  config: GachaConfig) -> List[str]:
    """预算距小保底、大保底还差多少抽"""
    advice = []
    needed_for_rare = guaranteed_rare_pity(config) - starting_pity
    needed_for_spark = config.spark_threshold - starting_spark

    if draw_budget < needed_for_rare:
        advice.append(f"距离必出6星还差 {needed_for_rare - draw_budget} 抽")
    elif draw_budget < needed_for_spark:
        advice.append(f"距离大保底还差 {needed_for_spark - draw_budget} 抽")

    if starting_spark + draw_budget < config.spark_threshold:
        advice.append(f"本期最多只能抽到第 {starting_spark + draw_budget} 抽，"
                      f"大保底计数不会继承到下期")
    return advice
