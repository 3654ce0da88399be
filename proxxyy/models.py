from dataclasses import dataclass, field
from typing import Dict, Union

from multidict import CIMultiDict

BODY_FILE_SUFFIXES = (".json", ".txt", ".html")


@dataclass(frozen=True)
class LiteralBody:
    text: str


@dataclass(frozen=True)
class FileBody:
    path: str


BodySpec = Union[LiteralBody, FileBody]


def classify_body(declared: str) -> BodySpec:
    if declared.endswith(BODY_FILE_SUFFIXES):
        return FileBody(declared)
    return LiteralBody(declared)


@dataclass(frozen=True)
class MockEntry:
    method: str
    path: str
    body: BodySpec = LiteralBody("")
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)

    def matches(self, method: str, path: str) -> bool:
        return self.method.upper() == method.upper() and self.path == path


@dataclass
class ResponseSpec:
    status: int
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""


@dataclass(frozen=True)
class CaptureRecord:
    method: str
    path: str
    timestamp: int
    sanitized_name: str
    status: int
    body: bytes
    extension: str = ".json"

    @property
    def file_name(self) -> str:
        return f"{self.sanitized_name}_{self.timestamp}{self.extension}"
