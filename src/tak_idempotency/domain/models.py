"""Idempotency record — the cached outcome of a mutating call."""
import base64
import json
from dataclasses import dataclass


@dataclass(frozen=True)
class CachedResponse:
    status_code: int
    body: bytes
    media_type: str = "application/json"

    def to_json(self) -> str:
        return json.dumps(
            {
                "status_code": self.status_code,
                "body": base64.b64encode(self.body).decode(),
                "media_type": self.media_type,
            }
        )

    @classmethod
    def from_json(cls, raw: str | bytes) -> "CachedResponse":
        data = json.loads(raw)
        return cls(
            status_code=int(data["status_code"]),
            body=base64.b64decode(data["body"]),
            media_type=data.get("media_type", "application/json"),
        )
