"""
Example: report sessions that outlived a short threshold.

Usage:
    DEFUNC_STALE_THRESHOLD=0.2 uv run python examples/stale_sessions.py
"""

import time

import defunc


class Session(defunc.Traced, watch=["close"]):
    def __init__(self, user: str):
        self.user = user

    def close(self) -> str:
        return self.user


if __name__ == "__main__":
    quick = Session("quick")
    quick.close()
    del quick

    slow = Session("slow")
    time.sleep(0.5)
    with defunc.audited(slow):
        slow.close()
    # Collecting Session with id ... which stayed in memory for 0.5..s
