"""
数据可视化模块
用于生成出UP抽数分布直方图
"""

import warnings

import matplotlib
matplotlib.use('Agg')
from matplotlib import font_manager
import matplotlib.pyplot as plt
import seaborn as sns
import numpy as np

from monte_carlo_analyzer import AggregateResult

sns.set_theme(style="whitegrid", context="paper", font_scale=1.2)

# 按顺序挑第一个可用的中文字体
CJK_FONT_CANDIDATES = ('Noto Sans CJK SC', 'Source Han Sans SC', 'SimHei', 'Microsoft YaHei', 'PingFang SC')


def use_cjk_font():
    available = {f.name for f in font_manager.fontManager.ttflist}
    font_name = next((name for name in CJK_FONT_CANDIDATES if name in available), None)
    if font_name is None:
        warnings.warn("未找到可用的中文字体，图表文字可能显示为方框")
        return None
    plt.rcParams['font.sans-serif'] = [font_name] + plt.rcParams['font.sans-serif']
    plt.rcParams['axes.unicode_minus'] = False
    return font_name


use_cjk_font()

COLORS = {
    'bar': '#e94560',
    'overflow': '#7F7F7F',
    'mean': '#1F77B4',
    'p95': '#FF7F0E',
}


class HistogramVisualizer:
    """出UP抽数分布可视化器"""

    def __init__(self):
        self.colors = COLORS

    def plot_histogram(self, result: AggregateResult, save_path: str = 'pulls_histogram.png') -> str:
        """
        绘制出UP所需抽数的频数分布
        最后一根柱为溢出桶，平均值和95%分位数用竖线标出
        """
        ceiling = len(result.histogram) - 1
        x = np.arange(1, ceiling + 2)
        colors = [self.colors['bar']] * ceiling + [self.colors['overflow']]

        fig, ax = plt.subplots(figsize=(14, 6))
        ax.set_axisbelow(True)
        ax.bar(x, result.histogram, width=0.9, color=colors, alpha=0.85, edgecolor='white', linewidth=0.5)

        if result.successes:
            ax.axvline(x=result.mean_draws_to_featured, color=self.colors['mean'], linestyle='--',
                       linewidth=1.5, label=f'平均值 {result.mean_draws_to_featured:.1f}')
        if result.percentile_95 is not None:
            ax.axvline(x=min(result.percentile_95, ceiling + 1), color=self.colors['p95'], linestyle=':',
                       linewidth=1.5, label=f'95%分位数 {result.percentile_95}')

        ticks = list(range(10, ceiling, 10)) + [ceiling + 1]
        ax.set_xticks(ticks)
        ax.set_xticklabels([str(t) for t in ticks[:-1]] + [f'>{ceiling}'])
        ax.set_xlabel('出UP所需抽数', fontsize=13, fontweight='bold')
        ax.set_ylabel('频数', fontsize=13, fontweight='bold')
        ax.set_title(f'出UP抽数分布 (模拟{result.run_count}次, 成功率{result.success_rate * 100:.1f}%)',
                     fontsize=15, fontweight='bold', pad=20)
        if ax.get_legend_handles_labels()[0]:
            ax.legend(fontsize=11, frameon=True, shadow=True)

        sns.despine()
        plt.tight_layout()
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
        print(f"图表已保存至: {save_path}")
        plt.close(fig)
        return save_path
