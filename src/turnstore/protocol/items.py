"""Typed request input items for the Responses API."""

from typing import Literal, Union

from pydantic import BaseModel


class InputTextPart(BaseModel):
    type: Literal["input_text"] = "input_text"
    text: str


class InputImagePart(BaseModel):
    type: Literal["input_image"] = "input_image"
    image_url: str


ContentPart = Union[InputTextPart, InputImagePart]


class MessageItem(BaseModel):
    """A role-tagged message, either flat text or multi-part content."""

    type: Literal["message"] | None = None
    role: str
    content: str | list[ContentPart]


class FunctionCallOutputItem(BaseModel):
    type: Literal["function_call_output"] = "function_call_output"
    call_id: str
    output: str


InputItem = Union[MessageItem, FunctionCallOutputItem]


def dump_items(items: list[InputItem]) -> list[dict]:
    """Serialize items to the JSON shapes the API expects."""
    return [item.model_dump(exclude_none=True) for item in items]
