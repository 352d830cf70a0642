"""
核心抽卡模拟器
"""
import math
from enum import Enum
from typing import Optional

import numpy as np

from config import GachaConfig, validate_start_state
from run_state import RunState


class PullOutcome(Enum):
    """单抽结果"""
    NONE = 'none'  # 未出6星
    RARE = 'rare'  # 出6星但不是UP
    FEATURED = 'featured'  # 概率出UP
    SPARK = 'spark'  # 大保底出UP


def current_rate(pity: int, config: GachaConfig) -> float:
    """计算当前6星概率"""
    if pity < config.soft_pity_start:
        return config.base_rate

    # 达到递增阈值的第一抽即计一次增量
    extra_pulls = pity - (config.soft_pity_start - 1)
    return min(1.0, config.base_rate + extra_pulls * config.soft_pity_increment)


def guaranteed_rare_pity(config: GachaConfig) -> int:
    """概率递增到100%时的水位，即实际的小保底"""
    if current_rate(0, config) >= 1.0:
        return 0

    steps = math.ceil((1.0 - config.base_rate) / config.soft_pity_increment)
    pity = max(config.soft_pity_start, config.soft_pity_start - 1 + steps)

    # 浮点误差最多差一抽
    if current_rate(pity, config) < 1.0:
        pity += 1
    elif pity > config.soft_pity_start and current_rate(pity - 1, config) >= 1.0:
        pity -= 1
    return pity


class GachaSimulator:
    """抽卡模拟器

    rng: 任何带 random() 方法、返回 [0, 1) 浮点数的随机源，
    一般为 numpy.random.Generator，测试中也可以用 random.Random
    """

    def __init__(self, config: GachaConfig, rng=None):
        self.config = config
        self.rng = rng if rng is not None else np.random.default_rng()

    def single_pull(self, state: RunState) -> PullOutcome:
        """
        单次抽卡，原地更新 state
        大保底判定优先于概率判定，触发时不掷骰，也不改动小保底水位
        """
        state.draws_used += 1
        state.spark += 1

        # 大保底：满spark_threshold抽必出UP（优先级最高）
        if state.spark >= self.config.spark_threshold:
            return PullOutcome.SPARK

        if self.rng.random() >= current_rate(state.pity, self.config):
            state.pity += 1
            return PullOutcome.NONE

        # 出了6星，重置小保底
        state.pity = 0

        # 判断是否是UP，歪了大保底计数继续累积
        if self.rng.random() < self.config.featured_share:
            return PullOutcome.FEATURED
        return PullOutcome.RARE

    def simulate_run(self, starting_pity: int, starting_spark: int, draw_budget: int) -> Optional[int]:
        """
        抽到UP角色或抽数预算耗尽为止
        返回: 出UP时的抽数，预算耗尽返回 None
        """
        state = RunState(starting_pity, starting_spark)

        while state.draws_used < draw_budget:
            outcome = self.single_pull(state)
            if outcome in (PullOutcome.FEATURED, PullOutcome.SPARK):
                return state.draws_used

        return None


def simulate_run(starting_pity, starting_spark, draw_budget, constants: GachaConfig, rng=None) -> Optional[int]:
    """模拟单次完整流程，参数检查后交给 GachaSimulator"""
    constants.validate()
    validate_start_state(starting_pity, starting_spark, draw_budget)
    return GachaSimulator(constants, rng).simulate_run(starting_pity, starting_spark, draw_budget)
