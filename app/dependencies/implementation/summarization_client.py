import os

import httpx

from httpx import Timeout

from ..api.summarization_base_class import SummarizationBaseClass

class SummarizationClient(SummarizationBaseClass):

    TIMEOUT_SECONDS = 15.0
    SUMMARY_KEY = "summary"

    def __init__(self):
        self.endpoint_url = os.environ.get("SUMMARIZATION_ENDPOINT_URL")
        self.api_key = os.environ.get("SUPABASE_ANON_KEY")

    async def summarize(self, texts: list[str]) -> str:
        assert len(self.endpoint_url or '') > 0, "Summarization endpoint is not configured"

        headers = {"Content-Type": "application/json"}
        if len(self.api_key or '') > 0:
            headers["Authorization"] = f"Bearer {self.api_key}"

        async with httpx.AsyncClient(timeout=Timeout(self.TIMEOUT_SECONDS)) as client:
            response = await client.post(self.endpoint_url,
                                         json={"texts": texts},
                                         headers=headers)
            response.raise_for_status()
            summary = response.json().get(self.SUMMARY_KEY)

        assert isinstance(summary, str) and len(summary) > 0, "Summarization endpoint returned no summary"
        return summary
