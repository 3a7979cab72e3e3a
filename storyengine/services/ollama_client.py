import logging
from typing import Any, Optional

from ollama import Client
from ollama._types import ResponseError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from storyengine.core.settings import settings

logger = logging.getLogger(__name__)

class OllamaClient:
    """
    Thin wrapper around Ollama's generate endpoint, used for both the
    story and the quiz prompts.
    """

    def __init__(self, host: Optional[str] = None, model: Optional[str] = None):
        self.host = str(host or settings.ollama_host)
        self.model = model or settings.ollama_model
        self._client = Client(host=self.host)

    def _attempts(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type((ResponseError, ConnectionError)),
            wait=wait_exponential(min=1, max=5),
            stop=stop_after_attempt(settings.max_attempts),
            reraise=True,
        )

    def _generate_once(self, prompt: str, options: dict, fmt: str) -> Any:
        try:
            return self._client.generate(model=self.model, prompt=prompt, options=options, format=fmt)
        except ResponseError as e:
            if e.status_code == 404 and settings.auto_pull:
                logger.warning("Model %s not found, pulling...", self.model)
                self._client.pull(self.model)
                return self._client.generate(model=self.model, prompt=prompt, options=options, format=fmt)
            raise

    def generate(
        self,
        prompt: str,
        temperature: float = 0.8,
        max_tokens: Optional[int] = None,
        json_mode: bool = True,
    ) -> str:
        opts = {"temperature": temperature, "num_predict": max_tokens or settings.max_tokens}
        fmt = "json" if json_mode else ""
        for attempt in self._attempts():
            with attempt:
                resp = self._generate_once(prompt, opts, fmt)
        return (getattr(resp, "response", "") or "").strip()

    def is_available(self) -> bool:
        try:
            self._client.list()
            return True
        except Exception as e:
            logger.warning("Ollama at %s is unreachable: %s", self.host, e)
            return False

ollama_client = OllamaClient()
