import pytest

from config import GachaConfig


@pytest.fixture
def config():
    return GachaConfig(base_rate=0.02, soft_pity_start=66, soft_pity_increment=0.06,
                       featured_share=0.5, spark_threshold=120)
