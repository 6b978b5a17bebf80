"""Sample actions used by ``neuro-game demo``."""

import logging

from pydantic import BaseModel, Field

from neuro_game_sdk.actions import NeuroAction, NeuroActionWithoutResponse

logger = logging.getLogger(__name__)


class ListResponse(BaseModel):
    testString: str = Field(description="One of the offered responses")


class EchoAction(NeuroAction[str]):
    def __init__(self) -> None:
        super().__init__("echo", "A simple command that echoes the message received to the logs.", str)

    def validate(self, data: str):
        return None

    def success_message(self, data: str) -> str:
        return f"Successfully echoed: {data}"

    async def process(self, data: str) -> None:
        self.logger.info("ECHO: %s", data)


class NoResponseAction(NeuroActionWithoutResponse):
    def __init__(self) -> None:
        super().__init__("no-response", "This is the no response action")

    def success_message(self, data: None = None) -> str:
        return "Successful!"

    async def process(self, data: None = None) -> None:
        self.logger.info("Processing...")


class ListAction(NeuroAction[ListResponse]):
    def __init__(self) -> None:
        super().__init__("list", "A simple list test action.", ListResponse)

    def validate(self, data: ListResponse):
        return None

    def success_message(self, data: ListResponse) -> str:
        return f"Successfully processed: {data}"

    async def process(self, data: ListResponse) -> None:
        self.logger.info("LIST: %s", data)

    def limited_response_resolver(self, field_path: str) -> list[str]:
        self.logger.debug("Requesting limited responses for %s", field_path)
        if field_path == "testString":
            return ["response1", "response2"]
        return []


def demo_actions() -> list[NeuroAction]:
    return [EchoAction(), NoResponseAction(), ListAction()]
