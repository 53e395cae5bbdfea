from typing import Literal
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProcessReceiptRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    image_url: str | None = Field(default=None)
    # True runs a built-in sample document, "debug" returns raw OCR text only
    test_mode: bool | Literal["debug"] = Field(default=False)
    test_document: str = Field(default="home_depot")

    @property
    def mode(self) -> Literal["normal", "test", "debug"]:
        if self.test_mode == "debug":
            return "debug"
        return "test" if self.test_mode else "normal"
