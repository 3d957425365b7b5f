from abc import ABC, abstractmethod

class SummarizationBaseClass(ABC):

    @abstractmethod
    async def summarize(self, texts: list[str]) -> str:
        """
        Requests a textual digest of the incoming note texts.
        Raises when the endpoint is unavailable or returns no summary.

        Arguments:
        texts – the note texts to be summarized.
        """
        pass
