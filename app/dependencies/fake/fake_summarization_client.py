from ..api.summarization_base_class import SummarizationBaseClass

FAKE_SUMMARY = "• Fake AI highlight"

class FakeSummarizationClient(SummarizationBaseClass):

    throws_exception: bool = False
    returns_empty_summary: bool = False

    def __init__(self):
        self.received_texts: list[list[str]] = []

    async def summarize(self, texts: list[str]) -> str:
        self.received_texts.append(texts)
        if self.throws_exception:
            raise Exception("Fake summarization exception")
        if self.returns_empty_summary:
            raise Exception("Summarization endpoint returned no summary")
        return FAKE_SUMMARY
