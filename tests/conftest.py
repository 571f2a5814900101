from typing import List

import pytest

from tests.helpers import MINUTE, T0, kline_row


@pytest.fixture
def newest_first_rows() -> List[List[str]]:
    # Bybit order: newest first. Price dips to 89 on the second minute, 79 on the fourth.
    return [
        kline_row(T0 + 3 * MINUTE, 85, 86, 79, 80),
        kline_row(T0 + 2 * MINUTE, 90, 95, 88, 94),
        kline_row(T0 + 1 * MINUTE, 97, 98, 89, 90),
        kline_row(T0, 100, 105, 95, 97),
    ]
