"""Runtime configuration for agent runs."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum

__all__ = ["StreamingMode", "RunConfig"]

logger = logging.getLogger(__name__)


class StreamingMode(str, Enum):
    """How streaming responses are delivered."""

    NONE = ""
    SSE = "sse"
    BIDI = "bidi"


@dataclass
class RunConfig:
    """Settings that govern how an agent run behaves."""

    max_llm_calls: int = 10
    streaming_mode: StreamingMode = StreamingMode.NONE
    allow_state_changes_on_streaming: bool = False
    debug: bool = False

    def validate(self) -> None:
        """Raise ValueError if the configuration is unusable; warn on risky values."""
        if self.max_llm_calls == sys.maxsize:
            raise ValueError("maxLlmCalls should be less than system max int")

        if self.max_llm_calls <= 0:
            logger.warning(
                "maxLlmCalls is less than or equal to 0. This will result in "
                "no enforcement on total number of llm calls that will be made for a "
                "run. This may not be ideal, as this could result in a never "
                "ending communication between the model and the agent in certain cases."
            )

        try:
            StreamingMode(self.streaming_mode)
        except ValueError:
            mode = getattr(self.streaming_mode, "value", self.streaming_mode)
            raise ValueError(f"invalid streaming mode: {mode}") from None