"""
Example: Stack (list-backed) with nested traced calls.

Usage:
    uv run python examples/stack_calls.py
"""

import sys

import defunc


@defunc.traced().audit()
class Frame:
    def __init__(self, value: int):
        self.value = value


@(
    defunc.traced()
    .watch("push", "pop", "peek", "drain")
    .watch_static("of")
    .sink(sys.stderr)
)
class Stack:
    def __init__(self):
        self.items: list[Frame] = []

    @classmethod
    def of(cls, *values: int) -> "Stack":
        stack = cls()
        for v in values:
            stack.push(v)
        return stack

    def push(self, value: int) -> None:
        self.items.append(Frame(value))

    def pop(self) -> int:
        if self.is_empty():
            raise IndexError("pop from empty stack")
        return self.items.pop().value

    def peek(self) -> int:
        if self.is_empty():
            raise IndexError("peek from empty stack")
        return self.items[-1].value

    def drain(self) -> list[int]:
        out = []
        while not self.is_empty():
            out.append(self.pop())
        return out

    def is_empty(self) -> bool:
        return len(self.items) == 0


if __name__ == "__main__":
    stack = Stack.of(10, 20)
    stack.push(30)
    stack.peek()
    stack.drain()
    try:
        stack.pop()
    except IndexError:
        pass
