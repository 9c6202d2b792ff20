"""Tests for tool-call fragment accumulation and turn assembly."""

import itertools

from chatstream.llm.accumulator import (
    ToolCallAccumulator,
    TurnAccumulator,
    fragments_from_delta,
)
from chatstream.types import MessageRole, ToolCallFragment


class TestToolCallAccumulator:
    def test_scenario_b(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, id="c1", name="get_weather", arguments_delta='{"loc'))
        acc.feed(ToolCallFragment(index=0, arguments_delta='ation":"Paris"}'))

        calls = acc.finalize()
        assert len(calls) == 1
        assert calls[0].id == "c1"
        assert calls[0].name == "get_weather"
        assert calls[0].arguments == '{"location":"Paris"}'

    def test_empty(self):
        acc = ToolCallAccumulator()
        assert not acc.has_calls()
        assert acc.finalize() == []

    def test_null_fields_do_not_overwrite(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, id="c1", name="f"))
        acc.feed(ToolCallFragment(index=0, id=None, name=None, arguments_delta="{}"))
        call = acc.finalize()[0]
        assert (call.id, call.name, call.arguments) == ("c1", "f", "{}")

    def test_id_arriving_late(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=0, arguments_delta='{"a"'))
        acc.feed(ToolCallFragment(index=0, id="late", name="f", arguments_delta=":1}"))
        call = acc.finalize()[0]
        assert call.id == "late"
        assert call.arguments == '{"a":1}'

    def test_finalize_orders_by_index(self):
        acc = ToolCallAccumulator()
        acc.feed(ToolCallFragment(index=2, id="c", name="z"))
        acc.feed(ToolCallFragment(index=0, id="a", name="x"))
        acc.feed(ToolCallFragment(index=1, id="b", name="y"))
        assert [c.id for c in acc.finalize()] == ["a", "b", "c"]

    def test_interleavings_give_same_result(self):
        per_call = {
            0: [
                ToolCallFragment(index=0, id="c0", name="alpha", arguments_delta='{"x"'),
                ToolCallFragment(index=0, arguments_delta=": 1"),
                ToolCallFragment(index=0, arguments_delta="}"),
            ],
            1: [
                ToolCallFragment(index=1, id="c1", name="beta", arguments_delta="{"),
                ToolCallFragment(index=1, arguments_delta='"y": 2}'),
            ],
        }
        expected = None
        # Every merge of the two sequences that keeps each call's own order.
        total = len(per_call[0]) + len(per_call[1])
        for positions in itertools.combinations(range(total), len(per_call[0])):
            order, i0, i1 = [], 0, 0
            for slot in range(total):
                if slot in positions:
                    order.append(per_call[0][i0])
                    i0 += 1
                else:
                    order.append(per_call[1][i1])
                    i1 += 1
            acc = ToolCallAccumulator()
            for frag in order:
                acc.feed(frag)
            result = [(c.id, c.name, c.arguments) for c in acc.finalize()]
            if expected is None:
                expected = result
            assert result == expected
        assert expected == [("c0", "alpha", '{"x": 1}'), ("c1", "beta", '{"y": 2}')]


class TestFragmentsFromDelta:
    def test_openai_delta(self):
        delta = {
            "tool_calls": [
                {
                    "index": 1,
                    "id": "call_9",
                    "type": "function",
                    "function": {"name": "search", "arguments": '{"q":'},
                },
            ],
        }
        assert fragments_from_delta(delta) == [
            ToolCallFragment(index=1, id="call_9", name="search", arguments_delta='{"q":'),
        ]

    def test_missing_fields(self):
        frags = fragments_from_delta({"tool_calls": [{"function": {"arguments": "x"}}]})
        assert frags == [ToolCallFragment(index=0, arguments_delta="x")]

    def test_null_index_uses_position(self):
        delta = {
            "tool_calls": [
                {"index": None, "id": "a", "function": {"name": "f", "arguments": "{}"}},
                {"index": None, "id": "b", "function": {"name": "g", "arguments": "{}"}},
            ],
        }
        frags = fragments_from_delta(delta)
        assert [f.index for f in frags] == [0, 1]

        acc = ToolCallAccumulator()
        for frag in frags:
            acc.feed(frag)
        assert [(c.id, c.name) for c in acc.finalize()] == [("a", "f"), ("b", "g")]

    def test_no_tool_calls(self):
        assert fragments_from_delta({"content": "hi"}) == []
        assert fragments_from_delta({"tool_calls": None}) == []


class TestTurnAccumulator:
    def test_text_only(self):
        turn = TurnAccumulator()
        turn.add_text("Hel")
        turn.add_text("lo")
        assert not turn.finished
        turn.finish_reason = "stop"
        assert turn.finished

        msg = turn.to_message()
        assert msg.role == MessageRole.ASSISTANT
        assert msg.content == "Hello"
        assert msg.tool_calls == []

    def test_tool_calls_in_message(self):
        turn = TurnAccumulator()
        turn.add_text("Checking.")
        turn.add_fragment(ToolCallFragment(index=0, id="c1", name="f", arguments_delta="{}"))
        msg = turn.to_message()
        assert msg.content == "Checking."
        assert [(tc.id, tc.name) for tc in msg.tool_calls] == [("c1", "f")]
        assert msg.to_dict()["tool_calls"][0]["function"] == {"name": "f", "arguments": "{}"}
