"""
单次模拟状态类
"""


class RunState:
    """单次模拟的状态，每次模拟新建，模拟结束即丢弃"""
    def __init__(self, pity: int = 0, spark: int = 0):
        self.pity = pity  # 小保底水位，出任意6星后清零
        self.spark = spark  # 大保底计数，出非UP六星不清零
        self.draws_used = 0  # 本次模拟已消耗抽数
