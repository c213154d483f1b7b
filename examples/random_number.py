"""
Example: the smallest traced type.

Usage:
    uv run python examples/random_number.py
"""

import defunc


class Random(defunc.Traced, watch_static=["random"]):
    @staticmethod
    def random():
        return 5


if __name__ == "__main__":
    # enter random: []
    # exit random: 5 (object count has changed by +0)
    Random.random()
