"""
Dispatch models for posprint.
Print requests, per-strategy attempts and aggregated dispatch results.
"""
from enum import Enum
from typing import Optional, List, Union
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class DispatchMode(str, Enum):
    """Strategy ordering policy."""
    CONSERVATIVE = "conservative"
    BYPASS = "bypass"
    AUTO = "auto"


class PrintPath(str, Enum):
    """Delivery path recommended to higher-level controllers."""
    SILENT_LIBRARY = "silent_library"
    RAW_TRANSPORT = "raw_transport"


class PrintOptions(BaseModel):
    """Options applied to a single print request."""
    copies: int = Field(1, description="Number of copies, concatenated into one job", ge=1, le=99)
    timeout_per_line_ms: Optional[int] = Field(
        None,
        description="Extra per-line budget for callers pacing slow printers",
        ge=0
    )
    is_plain_text: bool = Field(False, description="Normalize line endings to CRLF before sending")
    mode: DispatchMode = Field(DispatchMode.CONSERVATIVE, description="Strategy ordering policy")


class PrintRequest(BaseModel):
    """A payload addressed to one printer. Ephemeral; never persisted."""
    target_printer_name: str = Field(..., description="Exact OS display name", min_length=1)
    payload: bytes = Field(..., description="Raw bytes sent to the printer")
    is_plain_text: bool = False
    options: PrintOptions = Field(default_factory=PrintOptions)

    @field_validator('payload', mode='before')
    @classmethod
    def encode_text_payload(cls, v: Union[str, bytes, bytearray]) -> bytes:
        """Text payloads are sent as UTF-8."""
        if isinstance(v, str):
            return v.encode("utf-8")
        if isinstance(v, bytearray):
            return bytes(v)
        return v

    def rendered_payload(self) -> bytes:
        """Payload with plain-text normalization and copies applied."""
        data = self.payload
        if self.is_plain_text or self.options.is_plain_text:
            data = data.replace(b"\r\n", b"\n").replace(b"\n", b"\r\n")
            if not data.endswith(b"\r\n"):
                data += b"\r\n"
        return data * self.options.copies


class StrategyAttempt(BaseModel):
    """Record of one transport strategy invocation."""
    method_name: str
    success: bool
    error_detail: Optional[str] = None
    started_at: datetime = Field(default_factory=datetime.now)
    elapsed_ms: int = 0


class DispatchResult(BaseModel):
    """Aggregate outcome of a dispatch.

    ``success`` is true iff some attempt succeeded; attempts are in invocation
    order and nothing is attempted after the first success.
    """
    success: bool
    method_used: str = Field(..., description="Successful strategy name or 'All methods failed'")
    details: str = ""
    attempts: List[StrategyAttempt] = Field(default_factory=list)
    printer_name: Optional[str] = None
    mode: Optional[DispatchMode] = None

    @property
    def failed_methods(self) -> List[str]:
        return [a.method_name for a in self.attempts if not a.success]
