"""Unit tests for streaming primitives."""

from deltaweave.streaming import (
    TextAccumulator,
    ToolCall,
    ToolCallAssembler,
    ToolCallChunk,
)


class TestTextAccumulator:
    def test_delta_appended_and_returned(self):
        acc = TextAccumulator()
        assert acc.append("Hello") == "Hello"
        assert acc.append(" world") == " world"
        assert acc.text == "Hello world"

    def test_empty_delta_yields_nothing(self):
        acc = TextAccumulator()
        assert acc.append("") is None
        assert acc.text == ""

    def test_snapshot_equal_to_streamed_text(self):
        acc = TextAccumulator()
        acc.append("Hello world")
        assert acc.reconcile("Hello world") is None
        assert acc.text == "Hello world"

    def test_snapshot_extending_streamed_text_yields_suffix(self):
        acc = TextAccumulator()
        acc.append("Hello")
        assert acc.reconcile("Hello world") == " world"
        assert acc.text == "Hello world"

    def test_snapshot_without_prior_deltas(self):
        acc = TextAccumulator()
        assert acc.reconcile("Hello from done.") == "Hello from done."

    def test_shorter_snapshot_dropped(self):
        acc = TextAccumulator()
        acc.append("Hello world")
        assert acc.reconcile("Hello") is None
        assert acc.text == "Hello world"

    def test_non_prefix_snapshot_dropped(self):
        acc = TextAccumulator()
        acc.append("Hello world")
        assert acc.reconcile("Goodbye, cruel world") is None
        assert acc.text == "Hello world"

    def test_deltas_not_checked_against_history(self):
        acc = TextAccumulator()
        acc.append("ab")
        assert acc.append("ab") == "ab"
        assert acc.text == "abab"

    def test_emitted_text_concatenates_to_state(self):
        acc = TextAccumulator()
        emitted = [
            acc.append("The "),
            acc.reconcile("The quick"),
            acc.append(" brown"),
            acc.reconcile("The quick"),
            acc.reconcile("The quick brown fox"),
        ]
        assert "".join(e for e in emitted if e) == acc.text
        assert acc.text == "The quick brown fox"


class TestToolCallAssembler:
    def test_single_event_with_everything(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1", "call_1")
        chunk = asm.update(record, name="echo", arguments='{"text": "hi"}')

        assert chunk == ToolCallChunk(
            call_id="call_1", name="echo", arguments='{"text": "hi"}',
        )
        assert record.delivered

    def test_arguments_accumulated_across_deltas(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1", "call_1")
        asm.append_arguments(asm.resolve("fc_1"), '{"te')
        asm.append_arguments(asm.resolve(call_id="call_1"), 'xt": "hi"}')
        assert record.arguments == '{"text": "hi"}'

    def test_fragment_completing_record_emits(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1", "call_1")
        asm.update(record, name="echo")
        assert asm.append_arguments(record, "{}") == ToolCallChunk(
            call_id="call_1", name="echo", arguments="{}",
        )
        assert asm.append_arguments(record, " ") is None

    def test_final_arguments_replace_buffer(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1")
        asm.append_arguments(record, '{"q": "na')
        asm.update(record, arguments='{"q": "navigation"}')
        assert record.arguments == '{"q": "navigation"}'

    def test_item_and_call_keys_reach_same_record(self):
        asm = ToolCallAssembler()
        first = asm.resolve("fc_1", "call_1")
        assert asm.resolve(item_id="fc_1") is first
        assert asm.resolve(call_id="call_1") is first
        assert len(asm.records) == 1

    def test_call_key_backfilled_on_later_event(self):
        asm = ToolCallAssembler()
        record = asm.resolve(item_id="fc_1")
        asm.update(record, name="lookup", arguments="{}")
        assert record.call_key == ""

        again = asm.resolve(item_id="fc_1", call_id="call_9")
        assert again is record
        assert record.call_key == "call_9"
        assert asm.resolve(call_id="call_9") is record

    def test_item_key_backfilled_when_found_by_call(self):
        asm = ToolCallAssembler()
        record = asm.resolve(call_id="call_1")
        assert asm.resolve(item_id="fc_1", call_id="call_1") is record
        assert record.item_key == "fc_1"
        assert asm.resolve(item_id="fc_1") is record

    def test_identifiers_never_replaced(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1", "call_1")
        asm.resolve("fc_1", "call_other")
        assert record.call_key == "call_1"

    def test_output_position_fallback(self):
        asm = ToolCallAssembler()
        record = asm.resolve(output_index=2)
        assert asm.resolve(output_index=2) is record
        assert asm.resolve(item_id="fc_2", output_index=2) is record
        assert record.item_key == "fc_2"

    def test_output_position_with_conflicting_id_creates_new_record(self):
        asm = ToolCallAssembler()
        first = asm.resolve(item_id="fc_1", output_index=0)
        second = asm.resolve(item_id="fc_2", output_index=0)
        assert second is not first
        assert len(asm.records) == 2

    def test_emits_only_when_call_id_name_and_arguments_present(self):
        asm = ToolCallAssembler()
        record = asm.resolve(item_id="fc_1")
        assert asm.update(record, name="search") is None
        assert asm.update(record, arguments='{"q": 1}') is None
        chunk = asm.update(asm.resolve("fc_1", "call_1"))
        assert chunk.call_id == "call_1"

    def test_delivered_record_never_emits_again(self):
        asm = ToolCallAssembler()
        record = asm.resolve("fc_1", "call_1")
        assert asm.update(record, name="echo", arguments="{}") is not None
        assert asm.update(record, name="echo", arguments="{}") is None
        assert asm.update(record, arguments='{"changed": true}') is None

    def test_any_delivered_and_pending(self):
        asm = ToolCallAssembler()
        done = asm.resolve("fc_1", "call_1")
        orphan = asm.resolve("fc_2")
        assert not asm.any_delivered

        asm.update(done, name="a", arguments="{}")
        asm.update(orphan, name="b", arguments="{}")

        assert asm.any_delivered
        assert asm.pending() == [orphan]

    def test_multiple_concurrent_tool_calls(self):
        asm = ToolCallAssembler()
        asm.resolve("fc_1", "c1")
        asm.resolve("fc_2", "c2")
        asm.append_arguments(asm.resolve("fc_1"), '{"a": 1}')
        asm.append_arguments(asm.resolve("fc_2"), '{"b": 2}')

        first = asm.update(asm.resolve("fc_1"), name="foo")
        second = asm.update(asm.resolve("fc_2"), name="bar")

        assert first.to_tool_call() == ToolCall(id="c1", name="foo", arguments='{"a": 1}')
        assert second.to_tool_call() == ToolCall(id="c2", name="bar", arguments='{"b": 2}')

    def test_records_linked_by_both_ids_are_merged(self):
        asm = ToolCallAssembler()
        by_item = asm.resolve(item_id="fc_1")
        asm.update(by_item, name="X")
        by_call = asm.resolve(call_id="call_1")
        assert asm.update(by_call, name="X", arguments="{}") is not None

        merged = asm.resolve("fc_1", "call_1")

        assert merged is by_item
        assert merged.call_key == "call_1"
        assert merged.arguments == "{}"
        assert merged.delivered
        assert asm.resolve(call_id="call_1") is merged
        assert asm.update(merged, arguments="{}") is None
        assert asm.pending() == []

    def test_records_with_conflicting_ids_not_merged(self):
        asm = ToolCallAssembler()
        first = asm.resolve("fc_1", "call_1")
        second = asm.resolve("fc_2", "call_2")

        assert asm.resolve("fc_1", "call_2") is first
        assert first.call_key == "call_1"
        assert asm.resolve(call_id="call_2") is second
