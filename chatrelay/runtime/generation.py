"""Generation runtime: drives the relay and streams replies into the store."""

import asyncio
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

from chatrelay.core.logging import setup_logger
from chatrelay.models.conversation import Message
from chatrelay.runtime.attachments import Attachment, compose_user_content
from chatrelay.runtime.relay_client import RelayClient, iter_deltas
from chatrelay.runtime.store import ChatStore

logger = setup_logger(__name__)

GENERATION_FAILURE_NOTICE = (
    "\n\n❌ Error generating the response. Please try again."
)


class GenerationState(str, Enum):
    """Lifecycle of one generation cycle."""

    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    ERRORED = "errored"


class ChatRuntime:
    """
    Single-flight chat generation over a :class:`ChatStore`.

    At most one generation is outstanding; submissions made while one is in
    flight are ignored. Failures are absorbed into the assistant message as a
    visible notice, except cancellation which leaves no trace.
    """

    def __init__(self, store: ChatStore, client: RelayClient):
        self.store = store
        self._client = client
        self.state = GenerationState.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def is_generating(self) -> bool:
        return self.state is not GenerationState.IDLE

    def _set_state(self, state: GenerationState) -> None:
        if state is not self.state:
            logger.debug(f"Generation state: {self.state.value} -> {state.value}")
            self.state = state

    async def send_message(
        self,
        content: str,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> Optional[Message]:
        """
        Submit a user message and stream the assistant's reply into the store.

        Args:
            content: The typed message text
            attachments: Files whose content is inlined into the outgoing text

        Returns:
            The assistant message once generation has finished, or None if the
            submission was rejected

        Raises:
            AttachmentError: If too many files are attached (nothing is appended)
            asyncio.CancelledError: If the generation was cancelled
        """
        if self.is_generating:
            logger.info("Ignoring submission while a generation is in flight")
            return None
        if not content.strip() and not attachments:
            return None

        outgoing = compose_user_content(content, attachments)

        session = self.store.current_session or self.store.create_session()
        history = [m.to_payload() for m in session.messages]

        self.store.add_message(Message(role="user", content=content), session.id)
        assistant = self.store.add_message(
            Message(role="assistant", content="", is_streaming=True), session.id
        )
        self._set_state(GenerationState.REQUESTING)

        api_messages = history + [{"role": "user", "content": outgoing}]
        settings = self.store.settings
        logger.info(
            f"Sending request to relay with {len(api_messages)} messages, "
            f"temperature={settings.temperature}, maxTokens={settings.max_tokens}, "
            f"attachments={len(attachments or [])}"
        )

        try:
            async with self._client.stream_chat(
                api_messages,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            ) as chunks:
                async for delta in iter_deltas(self._track_first_byte(chunks)):
                    self.store.append_to_message(assistant.id, delta, session.id)
        except asyncio.CancelledError:
            logger.info("Generation cancelled")
            raise
        except Exception as e:
            self._set_state(GenerationState.ERRORED)
            logger.error(f"Error in chat generation: {e}", exc_info=True)
            self.store.append_to_message(
                assistant.id, GENERATION_FAILURE_NOTICE, session.id
            )
        finally:
            self.store.stop_streaming(assistant.id, session.id)
            self._set_state(GenerationState.IDLE)

        return assistant

    async def _track_first_byte(
        self, chunks: AsyncIterator[bytes]
    ) -> AsyncIterator[bytes]:
        async for chunk in chunks:
            if self.state is GenerationState.REQUESTING:
                self._set_state(GenerationState.STREAMING)
            yield chunk

    def submit(
        self,
        content: str,
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> Optional[asyncio.Task]:
        """Schedule :meth:`send_message` on the running loop; None if one is in flight."""
        if self.is_generating or (self._task is not None and not self._task.done()):
            logger.info("Ignoring submission while a generation is in flight")
            return None
        self._task = asyncio.create_task(self.send_message(content, attachments))
        return self._task

    async def retry(self, message_id: str) -> Optional[Message]:
        """
        Regenerate an assistant reply.

        The message, the user message before it and everything after are
        discarded, then that user message's content is submitted again.
        """
        if self.is_generating:
            return None
        session = self.store.current_session
        if session is None:
            return None
        index, _ = session.find_message(message_id)
        if index <= 0:
            return None
        previous = session.messages[index - 1]
        if previous.role != "user":
            return None
        self.store.truncate_messages(index - 1)
        return await self.send_message(previous.content)

    def delete_message(self, message_id: str) -> bool:
        return self.store.remove_message(message_id)

    def clear(self) -> None:
        self.store.clear_messages()

    async def cancel(self) -> None:
        """Abort the in-flight generation, if any, without a failure notice."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def aclose(self) -> None:
        """Tear down: cancel any generation and release the HTTP client."""
        await self.cancel()
        await self._client.aclose()
