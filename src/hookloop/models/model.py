"""Interface between the agent and a model provider."""

import abc
import logging
from typing import Any, AsyncIterable, Optional

from ..types.content import Messages
from ..types.streaming import StreamEvent
from ..types.tools import ToolSpec

logger = logging.getLogger(__name__)


class Model(abc.ABC):
    """A model provider as seen by the reasoning and summary phases.

    A provider translates messages and tool specs into its own request format and translates the response back into
    Converse-style stream chunks, which the agent assembles into one message.
    """

    @abc.abstractmethod
    # pragma: no cover
    def update_config(self, **model_config: Any) -> None:
        """Change provider settings such as the model id or the temperature."""
        pass

    @abc.abstractmethod
    # pragma: no cover
    def get_config(self) -> Any:
        """Current provider settings."""
        pass

    @property
    def model_name(self) -> Optional[str]:
        """The "model_id" setting, when the settings are a dict holding one."""
        config = self.get_config()
        return config.get("model_id") if isinstance(config, dict) else None

    @abc.abstractmethod
    # pragma: no cover
    def stream(
        self,
        messages: Messages,
        tool_specs: Optional[list[ToolSpec]] = None,
        system_prompt: Optional[str] = None,
        **kwargs: Any,
    ) -> AsyncIterable[StreamEvent]:
        """Send one request and stream the response.

        The agent closes the returned iterator when it stops listening early, after an interrupt or a cancellation.
        Closing it must release the request.

        Args:
            messages: Conversation to answer, without system messages.
            tool_specs: Tools the model may call; None for the summary call.
            system_prompt: Text of all system messages, joined.
            **kwargs: Generation options of this call.

        Yields:
            Converse-style stream chunks.
        """
        pass
