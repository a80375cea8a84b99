"""Abstract base classes for the pipeline's external collaborators."""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from newsdesk.models.datatypes import ChatMessage, NewsArticle, PriceQuote


class MarketDataProvider(ABC):
    """Abstract interface for fetching a delayed price quote."""

    @abstractmethod
    def fetch_quote(self, ticker: str) -> Optional[PriceQuote]:
        """
        Fetch the latest quote for a ticker.

        Args:
            ticker (str): The ticker symbol.

        Returns:
            Optional[PriceQuote]: The normalized quote, or None when no data is available.
        """
        pass


class NewsProvider(ABC):
    """Abstract interface for finding related coverage to cite."""

    @abstractmethod
    def fetch_related(self, ticker: str, company_name: str, limit: int = 2) -> List[NewsArticle]:
        """
        Fetch recent articles about a company, newest first.

        Args:
            ticker (str): The ticker symbol.
            company_name (str): Company display name used for the query and relevance filter.
            limit (int): Maximum number of articles to return.

        Returns:
            List[NewsArticle]: Related articles, possibly empty.
        """
        pass


class LLMProvider(ABC):
    """Abstract interface for a chat-completion backend."""

    @abstractmethod
    def complete(self, messages: Sequence[ChatMessage]) -> str:
        """
        Run one chat completion.

        Args:
            messages (Sequence[ChatMessage]): Conversation, system prompt first.

        Returns:
            str: The generated text.
        """
        pass
