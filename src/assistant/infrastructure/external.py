"""
Assistant External Service Adapters
====================================

Adapts the infrastructure chat client to the application layer
ICompletionProvider interface.
"""

from assistant.application import ICompletionProvider
from infrastructure.llm import IChatClient, build_chat_client


class CompletionProviderAdapter(ICompletionProvider):
    """
    Adapter that wraps the infrastructure chat client.

    Implements the application layer ICompletionProvider interface.
    """

    def __init__(self, client: IChatClient | None = None):
        self._client = client or build_chat_client()

    async def complete(
        self,
        system_instruction: str,
        user_text: str,
        max_tokens: int,
        json_output: bool = False
    ) -> str:
        """Generate completion text."""
        result = await self._client.chat_completion(
            system_instruction=system_instruction,
            user_text=user_text,
            max_tokens=max_tokens,
            json_output=json_output,
            operation="sentiment" if json_output else "response"
        )
        return result.content
