"""
抽卡配置类
"""
import numbers
from dataclasses import dataclass, fields


class InvalidConstantsError(ValueError):
    """模型常量或起始状态超出定义域"""


@dataclass(frozen=True)
class GachaConfig:
    """抽卡配置"""
    # 基础概率
    base_rate: float = 0.02  # 6星基础概率 2%

    # 递增保底
    soft_pity_start: int = 66  # 水位达到66开始递增
    soft_pity_increment: float = 0.06  # 每抽增加6%

    # UP概率
    featured_share: float = 0.5  # 六星为UP的概率 50%

    # 大保底
    spark_threshold: int = 120  # 120抽必得UP 6星

    # 直方图显示上限，超出部分计入溢出桶
    histogram_ceiling: int = 120

    def validate(self):
        """检查所有常量，出错直接抛出，不做截断"""
        for f in fields(self):
            value = getattr(self, f.name)
            expected = int if f.type in (int, 'int') else float
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidConstantsError(f"{f.name} 必须是数值, 当前为 {value!r}")
            if expected is int and not isinstance(value, numbers.Integral):
                raise InvalidConstantsError(f"{f.name} 必须是整数, 当前为 {value!r}")

        if not 0 < self.base_rate <= 1:
            raise InvalidConstantsError(f"base_rate 必须在 (0, 1] 范围内, 当前为 {self.base_rate}")
        if self.soft_pity_start < 0:
            raise InvalidConstantsError(f"soft_pity_start 不能为负, 当前为 {self.soft_pity_start}")
        if self.soft_pity_increment <= 0:
            raise InvalidConstantsError(
                f"soft_pity_increment 必须大于0, 当前为 {self.soft_pity_increment}")
        if not 0 < self.featured_share <= 1:
            raise InvalidConstantsError(
                f"featured_share 必须在 (0, 1] 范围内, 当前为 {self.featured_share}")
        if self.spark_threshold <= 0:
            raise InvalidConstantsError(f"spark_threshold 必须大于0, 当前为 {self.spark_threshold}")
        if self.histogram_ceiling <= 0:
            raise InvalidConstantsError(
                f"histogram_ceiling 必须大于0, 当前为 {self.histogram_ceiling}")
        return self


def validate_start_state(starting_pity, starting_spark, draw_budget, run_count=1):
    """检查模拟请求的起始水位、抽数预算和模拟次数"""
    checks = [
        ('starting_pity', starting_pity, 0),
        ('starting_spark', starting_spark, 0),
        ('draw_budget', draw_budget, 0),
        ('run_count', run_count, 1),
    ]
    for name, value, minimum in checks:
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidConstantsError(f"{name} 必须是整数, 当前为 {value!r}")
        if value < minimum:
            raise InvalidConstantsError(f"{name} 不能小于 {minimum}, 当前为 {value}")
