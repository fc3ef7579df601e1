"""
Image workflow node types.

``image-source`` holds an uploaded picture in its config (base64, so the
project file stays plain JSON). ``generator`` publishes the most recent image
produced by the out-of-band generation action; bulk execution never calls the
provider, it only re-emits what the node already has.
"""
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from ..core.Node import Node, ExecutionContext
from ..core.Pin import PinSpec
from ..core.Types import NodeType, ValueType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageData:
    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_base64(cls, payload: str, mime_type: str = "image/png") -> 'ImageData':
        # tolerate data URLs pasted straight from a browser
        if payload.startswith("data:") and "," in payload:
            header, payload = payload.split(",", 1)
            mime_type = header[5:].split(";", 1)[0] or mime_type
        return cls(base64.b64decode(payload, validate=True), mime_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    def __len__(self):
        return len(self.data)

    def __str__(self):
        return f"<image {self.mime_type}, {len(self.data)} bytes>"


@Node.register(NodeType.IMAGE_SOURCE)
class ImageSourceNode(Node):
    TITLE = "Image"
    OUTPUTS = (PinSpec("image", ValueType.IMAGE),)
    DEFAULT_CONFIG = {"data": None, "mime_type": "image/png", "name": None}

    def image(self) -> Optional[ImageData]:
        payload = self.config.get("data")
        if not payload:
            return None
        try:
            return ImageData.from_base64(payload, self.config.get("mime_type") or "image/png")
        except (binascii.Error, ValueError):
            logger.warning("Node %s holds an image payload that is not valid base64", self.id)
            return None

    def set_image(self, image: ImageData, name: Optional[str] = None):
        self.config.update({"data": image.to_base64(), "mime_type": image.mime_type, "name": name})

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        self.set_output(0, self.image())


@Node.register(NodeType.GENERATOR)
class GeneratorNode(Node):
    TITLE = "Generator"
    INPUTS = (PinSpec("reference", ValueType.IMAGE),)
    OUTPUTS = (PinSpec("image", ValueType.IMAGE),)
    DEFAULT_CONFIG = {"prompt": ""}

    def __init__(self, node_id: int, config=None):
        super().__init__(node_id, config)
        # written only by the generation service, never by bulk execution
        self.generated_image: Optional[ImageData] = None

    def accept_image(self, image: ImageData):
        self.generated_image = image
        self.set_output(0, image)

    def compute(self, inputs: List[Any], executionContext: ExecutionContext) -> None:
        self.set_output(0, self.generated_image)
