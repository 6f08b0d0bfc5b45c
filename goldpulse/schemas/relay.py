from typing import Literal

from pydantic import BaseModel

RelayShape = Literal["enveloped", "raw"]


class RelayEndpoint(BaseModel):
    name: str
    url_template: str
    shape: RelayShape = "raw"
    failures: int = 0
