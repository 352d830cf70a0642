"""
UP角色抽数蒙特卡洛模拟器 - 主程序入口

核心规则（默认配置）：
1. 基础概率 2%
2. 水位达到66后每抽增加6%，直到100%（82水位必出6星）
3. 六星为当期UP的概率 50%
4. 120抽大保底必得UP 6星，大保底判定优先于概率判定
5. 出任意6星清空小保底水位；歪了不清空大保底计数

给定当前小保底水位、大保底计数和可用抽数，估算预算内出UP的概率、
平均抽数和95%分位数。
"""

import argparse
import dataclasses
import logging

from config import GachaConfig, validate_start_state
from monte_carlo_analyzer import MonteCarloAnalyzer, budget_advice
from simulator_core import guaranteed_rare_pity


def build_parser():
    defaults = GachaConfig()
    parser = argparse.ArgumentParser(description="UP角色抽数蒙特卡洛模拟器")
    parser.add_argument("--pity", type=int, default=0, help="当前小保底水位")
    parser.add_argument("--spark", type=int, default=0, help="当前大保底计数")
    parser.add_argument("--budget", type=int, default=defaults.spark_threshold, help="可用抽数")
    parser.add_argument("--runs", type=int, default=50000, help="模拟次数")
    parser.add_argument("--workers", type=int, default=1, help="并行进程数")
    parser.add_argument("--seed", type=int, default=None, help="随机种子")

    group = parser.add_argument_group("模型常量")
    group.add_argument("--base-rate", type=float, default=defaults.base_rate)
    group.add_argument("--soft-pity-start", type=int, default=defaults.soft_pity_start)
    group.add_argument("--soft-pity-increment", type=float, default=defaults.soft_pity_increment)
    group.add_argument("--featured-share", type=float, default=defaults.featured_share)
    group.add_argument("--spark-threshold", type=int, default=defaults.spark_threshold)
    group.add_argument("--ceiling", type=int, default=defaults.histogram_ceiling, help="直方图显示上限")

    parser.add_argument("--plot", metavar="PATH", default=None, help="保存直方图到指定路径")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出模拟进度日志")
    return parser


def main(argv=None):
    """主函数"""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format="%(asctime)s - %(levelname)s - %(message)s")

    config = dataclasses.replace(
        GachaConfig(),
        base_rate=args.base_rate,
        soft_pity_start=args.soft_pity_start,
        soft_pity_increment=args.soft_pity_increment,
        featured_share=args.featured_share,
        spark_threshold=args.spark_threshold,
        histogram_ceiling=args.ceiling,
    )
    try:
        config.validate()
        validate_start_state(args.pity, args.spark, args.budget, args.runs)
        analyzer = MonteCarloAnalyzer(config, iterations=args.runs, workers=args.workers, seed=args.seed)
    except ValueError as e:
        parser.error(str(e))

    print("=" * 60)
    print("UP角色抽数模拟器")
    print("=" * 60)
    print("\n当前规则:")
    print(f"  • 6星基础概率: {config.base_rate * 100}%")
    print(f"  • 递增保底: 水位{config.soft_pity_start}起每抽+{config.soft_pity_increment * 100:.1f}%")
    print(f"  • 小保底: {guaranteed_rare_pity(config)}水位必出6星")
    print(f"  • UP概率: {config.featured_share * 100}%")
    print(f"  • 大保底: {config.spark_threshold}抽必出UP 6星")
    print(f"\n当前状态: 小保底水位 {args.pity}, 大保底计数 {args.spark}, 可用 {args.budget} 抽")

    for line in budget_advice(args.pity, args.spark, args.budget, config):
        print(f"  ⚠ {line}")

    result = analyzer.run_batch(args.pity, args.spark, args.budget)
    analyzer.print_results(result, args.budget)

    if args.plot:
        # 只有需要出图时才加载 matplotlib
        from visualizer import HistogramVisualizer
        HistogramVisualizer().plot_histogram(result, args.plot)

    return result


if __name__ == "__main__":
    main()
