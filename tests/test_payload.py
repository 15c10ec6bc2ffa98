"""Tests for vendor payload builders."""

import json

import pytest

from polychat.config import ChatConfig
from polychat.context import ChatContext, ChatTurn, Conversation
from polychat.errors import CapabilityError, UnsupportedContentError
from polychat.payload import get_builder, split_by_img, strip_html_tags
from polychat.payload.anthropic import AnthropicPayloadBuilder
from polychat.payload.base import (
    TOOL_PLACEHOLDER,
    TOOL_PLACEHOLDER_NEXT_MESSAGE,
    remove_additional_properties,
)
from polychat.payload.google import GooglePayloadBuilder, gemini_schema
from polychat.payload.ollama import OllamaPayloadBuilder
from polychat.payload.openai import BRIDGE_TEXT, OpenAIPayloadBuilder
from polychat.providers.descriptor import WireFormat
from polychat.types import (
    AudioPart,
    ImagePart,
    RequestMessage,
    TextPart,
    ToolCall,
    ToolDescriptor,
    ToolResult,
)


def _ctx(provider: str, model: str = "", **kwargs) -> ChatContext:
    return ChatContext(Conversation(provider=provider, model=model, **kwargs), ChatConfig())


def _user(content) -> RequestMessage:
    return RequestMessage(role="user", content=content)


WEATHER = ToolDescriptor(
    name="weather",
    description="Get the weather",
    input_schema={
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City"},
            "units": {"type": "string", "enum": ["c", "f"], "default": "c"},
            "where": {
                "type": "object",
                "properties": {"lat": {"type": "number"}},
                "additionalProperties": False,
            },
        },
        "required": ["city"],
        "additionalProperties": False,
    },
)


# ---------------------------------------------------------------------------
# HTML helpers
# ---------------------------------------------------------------------------

class TestHtmlHelpers:
    def test_strip_tags(self):
        assert strip_html_tags("<p>Hello&nbsp;<b>world</b></p>") == "Hello\xa0world"

    def test_line_breaks_kept(self):
        assert strip_html_tags("a<br>b<br/>c</p>d") == "a\nb\nc\nd"

    def test_comparison_is_not_a_tag(self):
        assert strip_html_tags("1 < 2 and 3 > 2") == "1 < 2 and 3 > 2"

    def test_split_by_img(self):
        parts = split_by_img(
            '<p>Look</p><img src="data:image/jpeg;base64,QUJD"/>'
            "<p>and</p><img src='https://x.test/a.webp?s=1'>end"
        )
        assert parts == [
            TextPart("Look"),
            ImagePart("QUJD", "image/jpeg"),
            TextPart("and"),
            ImagePart("https://x.test/a.webp?s=1", "image/webp", is_url=True),
            TextPart("end"),
        ]

    def test_remove_additional_properties(self):
        schema = {"a": {"additionalProperties": True, "b": [{"additionalProperties": 1}]}}
        assert remove_additional_properties(schema) == {"a": {"b": [{}]}}


# ---------------------------------------------------------------------------
# OpenAI family
# ---------------------------------------------------------------------------

class TestOpenAIPayload:
    def test_basic_openai(self):
        ctx = _ctx("OpenAI", "gpt-4o", system_message="Be brief.")
        payload = OpenAIPayloadBuilder().build(ctx, [_user("hi")])
        assert payload == {
            "model": "gpt-4o",
            "messages": [
                {"role": "developer", "content": "Be brief."},
                {"role": "user", "content": "hi"},
            ],
            "temperature": 1,
            "stream": True,
            "max_completion_tokens": 4096,
            "stream_options": {"include_usage": True},
        }

    def test_optional_fields_omitted(self):
        ctx = _ctx("Doubao", stream=False)
        payload = OpenAIPayloadBuilder().build(ctx, [_user("hi")])
        assert "tools" not in payload
        assert "tool_choice" not in payload
        assert "stream_options" not in payload
        assert payload["messages"] == [{"role": "user", "content": "hi"}]
        assert None not in payload.values()

    def test_plain_system_role(self):
        ctx = _ctx("DeepSeek", system_message="sys")
        payload = OpenAIPayloadBuilder().build(ctx, [_user("hi")])
        assert payload["messages"][0] == {"role": "system", "content": "sys"}
        assert payload["max_tokens"] == 4096

    def test_reasoning_model(self):
        ctx = _ctx("OpenAI", "o1", system_message="sys", temperature=0.3)
        payload = OpenAIPayloadBuilder().build(ctx, [_user("hi")])
        assert payload["messages"][0]["role"] == "user"
        assert payload["temperature"] == 1

    def test_lowercase_model(self):
        payload = OpenAIPayloadBuilder().build(_ctx("Baidu", "ERNIE-4.0-8K"), [_user("x")])
        assert payload["model"] == "ernie-4.0-8k"
        assert payload["temperature"] == 0.8

    def test_model_id_extra(self):
        from dataclasses import replace

        ctx = _ctx("Doubao")
        model = replace(ctx.model, extras={"model_id": "ep-2024-abc"})
        ctx._provider = replace(ctx.provider, models=(model,))
        payload = OpenAIPayloadBuilder().build(ctx, [_user("x")])
        assert payload["model"] == "ep-2024-abc"

    def test_tools(self):
        payload = OpenAIPayloadBuilder().build(_ctx("OpenAI"), [_user("x")], [WEATHER])
        assert payload["tool_choice"] == "auto"
        fn = payload["tools"][0]
        assert fn["type"] == "function"
        assert fn["function"]["name"] == "weather"
        params = fn["function"]["parameters"]
        assert params["required"] == ["city"]
        assert "additionalProperties" not in json.dumps(params)

    def test_long_description_truncated(self):
        tool = ToolDescriptor(name="t", description="d" * 1500)
        rendered = OpenAIPayloadBuilder().make_tool(tool)
        assert len(rendered["function"]["description"]) == 1000
        assert rendered["function"]["parameters"] == {"type": "object", "properties": {}}

    def test_html_prompt_with_image_for_vision_model(self):
        ctx = _ctx("OpenAI", "gpt-4o")
        payload = OpenAIPayloadBuilder().build(
            ctx, [_user('<p>Look</p><img src="data:image/png;base64,AAAA">')],
        )
        assert payload["messages"][0]["content"] == [
            {"type": "text", "text": "Look"},
            {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
        ]

    def test_html_prompt_for_text_model_is_stripped(self):
        ctx = _ctx("DeepSeek")
        payload = OpenAIPayloadBuilder().build(
            ctx, [_user('<p>Look <img src="https://x.test/a.png"></p>')],
        )
        assert payload["messages"][0]["content"] == "Look"

    def test_image_for_non_vision_model_raises(self):
        ctx = _ctx("DeepSeek")
        msg = _user((TextPart("see"), ImagePart("AAAA")))
        with pytest.raises(CapabilityError):
            OpenAIPayloadBuilder().build(ctx, [msg])

    def test_audio_without_capability_raises(self):
        msg = _user((AudioPart("AAAA", "audio/wav"),))
        with pytest.raises(CapabilityError):
            OpenAIPayloadBuilder().build(_ctx("OpenAI", "gpt-4o"), [msg])

    def test_filter_parts_drops_silently(self):
        ctx = _ctx("Mistral", "mistral-large-latest")
        payload = OpenAIPayloadBuilder().build(ctx, [
            _user((TextPart("see"), ImagePart("AAAA"))),
            _user((ImagePart("BBBB"),)),
        ])
        assert payload["messages"] == [
            {"role": "user", "content": [{"type": "text", "text": "see"}]},
        ]

    def test_history_is_replayed(self):
        turns = [
            ChatTurn(id="1", prompt="q1", reply="a1"),
            ChatTurn(id="2", prompt="q2", reply=""),
            ChatTurn(id="3", prompt="q3", reply="a3"),
            ChatTurn(id="4", prompt="q4", reply="a4"),
        ]
        ctx = _ctx("DeepSeek", turns=turns)
        payload = OpenAIPayloadBuilder().build(ctx, [_user("now")], msg_id="4")
        assert [m["content"] for m in payload["messages"]] == ["q1", "a1", "q3", "a3", "now"]

    def test_structured_history(self):
        turns = [ChatTurn(id="1", prompt="ignored", reply="done", structured_prompts=[
            {"role": "user", "content": [{"type": "text", "text": "part one"}]},
        ])]
        payload = OpenAIPayloadBuilder().build(_ctx("DeepSeek", turns=turns), [_user("next")])
        assert payload["messages"][0] == {
            "role": "user", "content": [{"type": "text", "text": "part one"}],
        }
        assert payload["messages"][1] == {"role": "assistant", "content": "done"}

    def test_deterministic(self):
        ctx = _ctx("OpenAI", system_message="s")
        builder = OpenAIPayloadBuilder()
        assert builder.build(ctx, [_user("x")], [WEATHER]) == builder.build(ctx, [_user("x")], [WEATHER])


class TestToolMessages:
    CALL = ToolCall(name="weather", arguments={"city": "Paris"}, id="call_1")

    def test_text_result_openai(self):
        builder = OpenAIPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, ToolResult.text("sunny"), "Checking.")
        payload = builder.build(_ctx("OpenAI"), [_user("weather?"), *follow])
        assert payload["messages"][1:] == [
            {
                "role": "assistant",
                "content": "Checking.",
                "tool_calls": [{
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "weather", "arguments": '{"city": "Paris"}'},
                }],
            },
            {"role": "tool", "tool_call_id": "call_1", "name": "weather", "content": "sunny"},
        ]

    def test_missing_id_is_generated(self):
        follow = OpenAIPayloadBuilder().make_tool_messages(
            ToolCall(name="t"), ToolResult.text("x"),
        )
        call_id = follow[0].tool_calls[0].id
        assert call_id.startswith("call_")
        assert follow[1].tool_call_id == call_id

    def test_error_result(self):
        follow = OpenAIPayloadBuilder().make_tool_messages(
            self.CALL, ToolResult.failure("boom"),
        )
        assert follow[1].content == (TextPart("boom"),)

    def test_unsupported_fields_removed(self):
        result = ToolResult(content=[{
            "type": "text", "text": "ok", "mimeType": "text/plain",
            "annotations": {"audience": ["user"]}, "_meta": {"x": 1},
        }])
        builder = OpenAIPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, result)
        body = json.dumps(builder.build(_ctx("OpenAI"), [_user("q"), *follow]))
        assert "annotations" not in body
        assert "mimeType" not in body
        assert "_meta" not in body

    def test_unknown_block_rejected(self):
        result = ToolResult(content=[{"type": "video", "data": "x"}])
        with pytest.raises(UnsupportedContentError):
            OpenAIPayloadBuilder().make_tool_messages(self.CALL, result)

    def test_image_result_with_bridge(self):
        result = ToolResult(content=[
            {"type": "text", "text": "chart"},
            {"type": "image", "data": "AAAA", "mimeType": "image/png"},
        ])
        builder = OpenAIPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, result)
        ctx = _ctx("Mistral", "pixtral-large-latest")
        messages = builder.build(ctx, [_user("q"), *follow])["messages"]
        tool_msg, bridge, supplement = messages[2:]
        assert tool_msg["role"] == "tool"
        assert json.loads(tool_msg["content"]) == {"message": TOOL_PLACEHOLDER_NEXT_MESSAGE}
        assert bridge == {"role": "assistant", "content": BRIDGE_TEXT}
        assert supplement["role"] == "user"
        assert supplement["content"][1] == {
            "type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"},
        }

    def test_image_result_without_bridge(self):
        result = ToolResult(content=[{"type": "image", "data": "AAAA", "mimeType": "image/png"}])
        builder = OpenAIPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, result)
        messages = builder.build(_ctx("OpenAI", "gpt-4o"), [_user("q"), *follow])["messages"]
        assert [m["role"] for m in messages] == ["user", "assistant", "tool", "user"]

    def test_anthropic_tool_round(self):
        builder = AnthropicPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, ToolResult.text("sunny"))
        messages = builder.build(_ctx("Anthropic"), [_user("q"), *follow])["messages"]
        assert messages[1] == {
            "role": "assistant",
            "content": [{"type": "tool_use", "id": "call_1", "name": "weather",
                         "input": {"city": "Paris"}}],
        }
        assert messages[2] == {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": "call_1", "content": "sunny"}],
        }

    def test_anthropic_image_result(self):
        result = ToolResult(content=[{"type": "image", "data": "AAAA", "mimeType": "image/gif"}])
        builder = AnthropicPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, result)
        messages = builder.build(_ctx("Anthropic"), [_user("q"), *follow])["messages"]
        assert messages[2]["content"] == [
            {"type": "tool_result", "tool_use_id": "call_1", "content": TOOL_PLACEHOLDER},
            {"type": "image", "source": {"type": "base64", "media_type": "image/gif",
                                         "data": "AAAA"}},
        ]

    def test_google_tool_round(self):
        builder = GooglePayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, ToolResult.text("sunny"), "Let me see")
        contents = builder.build(_ctx("Google"), [_user("q"), *follow])["contents"]
        assert contents[1] == {"role": "model", "parts": [
            {"text": "Let me see"},
            {"functionCall": {"name": "weather", "args": {"city": "Paris"}}},
        ]}
        assert contents[2] == {"role": "user", "parts": [
            {"functionResponse": {"name": "weather", "response": {"content": "sunny"}}},
        ]}

    def test_ollama_tool_round(self):
        builder = OllamaPayloadBuilder()
        follow = builder.make_tool_messages(self.CALL, ToolResult.text("sunny"))
        messages = builder.build(_ctx("Ollama"), [_user("q"), *follow])["messages"]
        assert messages[1]["tool_calls"] == [
            {"function": {"name": "weather", "arguments": {"city": "Paris"}}},
        ]
        assert messages[2] == {"role": "tool", "content": "sunny", "tool_name": "weather"}


# ---------------------------------------------------------------------------
# Anthropic, Google, Ollama
# ---------------------------------------------------------------------------

class TestAnthropicPayload:
    def test_basic(self):
        ctx = _ctx("Anthropic", system_message="sys", temperature=1.5)
        payload = AnthropicPayloadBuilder().build(ctx, [_user("hi")])
        assert payload == {
            "model": "claude-sonnet-4-5",
            "messages": [{"role": "user", "content": "hi"}],
            "temperature": 1,
            "stream": True,
            "max_tokens": 8192,
            "system": "sys",
        }

    def test_no_system_field_when_blank(self):
        payload = AnthropicPayloadBuilder().build(_ctx("Anthropic", system_message="  "), [_user("hi")])
        assert "system" not in payload

    def test_tools(self):
        payload = AnthropicPayloadBuilder().build(_ctx("Anthropic"), [_user("x")], [WEATHER])
        tool = payload["tools"][0]
        assert tool["name"] == "weather"
        assert tool["input_schema"]["required"] == ["city"]
        assert "additionalProperties" not in json.dumps(tool)
        assert payload["tool_choice"] == {"type": "auto", "disable_parallel_tool_use": True}

    def test_required_defaults_to_empty(self):
        tool = AnthropicPayloadBuilder().make_tool(ToolDescriptor(name="now"))
        assert tool["input_schema"] == {"type": "object", "properties": {}, "required": []}

    def test_url_image(self):
        msg = _user((ImagePart("https://x.test/a.png", is_url=True),))
        payload = AnthropicPayloadBuilder().build(_ctx("Anthropic"), [msg])
        assert payload["messages"][0]["content"] == [
            {"type": "image", "source": {"type": "url", "url": "https://x.test/a.png"}},
        ]

    def test_image_for_text_model_raises(self):
        msg = _user((ImagePart("AAAA"),))
        with pytest.raises(CapabilityError):
            AnthropicPayloadBuilder().build(_ctx("Anthropic", "claude-3-5-haiku-latest"), [msg])

    def test_audio_raises(self):
        msg = _user((AudioPart("AAAA"),))
        with pytest.raises(CapabilityError):
            AnthropicPayloadBuilder().build(_ctx("Anthropic"), [msg])


class TestGooglePayload:
    def test_basic(self):
        ctx = _ctx("Google", system_message="sys")
        payload = GooglePayloadBuilder().build(ctx, [
            _user("hi"), RequestMessage(role="assistant", content="hello"), _user("again"),
        ])
        assert payload == {
            "contents": [
                {"role": "user", "parts": [{"text": "hi"}]},
                {"role": "model", "parts": [{"text": "hello"}]},
                {"role": "user", "parts": [{"text": "again"}]},
            ],
            "generationConfig": {"temperature": 1, "maxOutputTokens": 8192},
            "system_instruction": {"parts": [{"text": "sys"}]},
        }

    def test_tool_declarations(self):
        payload = GooglePayloadBuilder().build(_ctx("Google"), [_user("x")], [WEATHER])
        decl = payload["tools"][0]["function_declarations"][0]
        params = decl["parameters"]
        assert params["type"] == "OBJECT"
        assert params["required"] == ["city"]
        assert params["properties"]["city"] == {"type": "STRING", "description": "City"}
        assert params["properties"]["units"] == {"type": "STRING", "enum": ["c", "f"]}
        assert params["properties"]["where"] == {
            "type": "OBJECT", "properties": {"lat": {"type": "NUMBER"}},
        }
        assert payload["tool_config"] == {"function_calling_config": {"mode": "AUTO"}}

    def test_tool_without_properties(self):
        decl = GooglePayloadBuilder().make_tool(ToolDescriptor(name="now", description="time"))
        assert decl == {"name": "now", "description": "time"}

    def test_enum_values_become_strings(self):
        assert gemini_schema({"type": "integer", "enum": [1, 2]}) == {
            "type": "STRING", "enum": ["1", "2"],
        }

    def test_inline_image_and_audio(self):
        msg = _user((TextPart("t"), ImagePart("AAAA", "image/jpeg"), AudioPart("BBBB", "audio/wav")))
        payload = GooglePayloadBuilder().build(_ctx("Google"), [msg])
        assert payload["contents"][0]["parts"] == [
            {"text": "t"},
            {"inline_data": {"mime_type": "image/jpeg", "data": "AAAA"}},
            {"inline_data": {"mime_type": "audio/wav", "data": "BBBB"}},
        ]

    def test_url_image_rejected(self):
        msg = _user((ImagePart("https://x.test/a.png", is_url=True),))
        with pytest.raises(CapabilityError):
            GooglePayloadBuilder().build(_ctx("Google"), [msg])


class TestOllamaPayload:
    def test_basic(self):
        ctx = _ctx("Ollama", system_message="sys", temperature=0.5)
        payload = OllamaPayloadBuilder().build(ctx, [_user("hi")], [WEATHER])
        assert payload["model"] == "llama3.2"
        assert payload["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        assert payload["options"] == {"temperature": 0.5, "num_predict": 2048}
        assert payload["tools"][0]["function"]["name"] == "weather"

    def test_images_flattened(self):
        msg = _user((TextPart("a"), TextPart("b"), ImagePart("AAAA")))
        payload = OllamaPayloadBuilder().build(_ctx("Ollama", "llava"), [msg])
        assert payload["messages"][0] == {"role": "user", "content": "a\nb", "images": ["AAAA"]}


class TestRegistry:
    @pytest.mark.parametrize("wire, cls", [
        (WireFormat.OPENAI, OpenAIPayloadBuilder),
        (WireFormat.ANTHROPIC, AnthropicPayloadBuilder),
        (WireFormat.GOOGLE, GooglePayloadBuilder),
        (WireFormat.OLLAMA, OllamaPayloadBuilder),
    ])
    def test_get_builder(self, wire, cls):
        assert isinstance(get_builder(wire), cls)
