"""
Language Model Client
=====================

Thin adapter over an OpenAI-compatible chat completions endpoint.

The model is treated as an opaque, untrusted capability: given a prompt it
returns text believed to satisfy an output contract, or it fails. This client
only guarantees that usable text came back; parsing and validation belong to
the caller.

Determinism:
------------
- Temperature is pinned to 0.0 on every call
- Output length is bounded per call (max_tokens)

Failure semantics:
------------------
Exactly one request per call. Transport errors, timeouts, HTTP error statuses,
refusals and empty completions all raise ExternalCallFailure. No retries.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

from app.config import Config

from .errors import ExternalCallFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LLMCompletion:
    """Text returned by the model plus call metadata."""
    text: str
    model: str
    tokens_used: int = 0
    latency_ms: int = 0


class LLMClient:
    """
    Chat completions client used by every pipeline stage.
    
    API Support:
    - OpenAI API
    - OpenAI-compatible APIs (e.g., via vllm, ollama)
    """
    
    TEMPERATURE = 0.0
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout: Optional[int] = None
    ):
        """
        Initialize the client.
        
        Args:
            api_key: API key (from Config if not provided)
            api_base: Base URL for the API
            model_name: Model name to use
            timeout: Request timeout in seconds
        """
        self.api_key = api_key or Config.LLM_API_KEY
        self.api_base = (api_base or Config.LLM_API_BASE).rstrip('/')
        self.model_name = model_name or Config.LLM_MODEL
        self.timeout = timeout or Config.LLM_TIMEOUT
        
        if not self.api_key:
            logger.warning(
                "LLM API key not configured. Calls will fail. "
                "Set LLM_API_KEY or OPENAI_API_KEY environment variable."
            )
    
    @property
    def is_available(self) -> bool:
        """Check if the client has credentials."""
        return bool(self.api_key)
    
    def complete(
        self,
        prompt: str,
        system_prompt: str,
        max_tokens: int,
        stage: Optional[str] = None
    ) -> LLMCompletion:
        """
        Run one deterministic completion.
        
        Args:
            prompt: User prompt (full instruction set + inputs)
            system_prompt: System prompt
            max_tokens: Output-length budget
            stage: Stage name for logging and error reporting
        
        Returns:
            LLMCompletion with non-empty text
        
        Raises:
            ExternalCallFailure: if no usable text came back
        """
        if not self.api_key:
            raise ExternalCallFailure("Language model API key is not configured", stage=stage)
        
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        
        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt}
            ],
            "temperature": self.TEMPERATURE,
            "max_tokens": max_tokens
        }
        
        start_time = time.time()
        try:
            response = requests.post(
                f"{self.api_base}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            result_data = response.json()
        except requests.Timeout as e:
            logger.error(f"[{stage}] Model call timed out after {self.timeout}s")
            raise ExternalCallFailure(f"Model call timed out after {self.timeout}s", stage=stage) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"[{stage}] Model call failed with HTTP {status}")
            raise ExternalCallFailure(
                f"Model call failed with HTTP {status}",
                stage=stage,
                details={'status_code': status}
            ) from e
        except (requests.RequestException, ValueError) as e:
            logger.error(f"[{stage}] Model call failed: {e}")
            raise ExternalCallFailure(f"Model call failed: {e}", stage=stage) from e
        
        latency_ms = int((time.time() - start_time) * 1000)
        text = self._extract_text(result_data, stage)
        usage = result_data.get('usage') or {}
        tokens_used = (usage.get('total_tokens') or 0) if isinstance(usage, dict) else None
        if not isinstance(tokens_used, int):
            raise ExternalCallFailure("Model response has a malformed usage block", stage=stage)
        
        logger.info(
            f"[{stage}] Model call completed: model={result_data.get('model', self.model_name)}, "
            f"tokens={tokens_used}, latency={latency_ms}ms"
        )
        
        return LLMCompletion(
            text=text,
            model=result_data.get('model') or self.model_name,
            tokens_used=tokens_used,
            latency_ms=latency_ms
        )
    
    def _extract_text(self, result_data, stage: Optional[str]) -> str:
        """Pull the completion text out of a response, rejecting unusable ones."""
        if not isinstance(result_data, dict):
            raise ExternalCallFailure("Model response is not a JSON object", stage=stage)
        
        choices = result_data.get('choices') or []
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise ExternalCallFailure("Model response contains no choices", stage=stage)
        
        choice = choices[0]
        message = choice.get('message') or {}
        if not isinstance(message, dict):
            raise ExternalCallFailure("Model response message is not an object", stage=stage)
        
        if message.get('refusal'):
            raise ExternalCallFailure(
                "Model refused the request",
                stage=stage,
                details={'refusal': str(message['refusal'])[:200]}
            )
        
        if choice.get('finish_reason') == 'content_filter':
            raise ExternalCallFailure("Model output was blocked by the content filter", stage=stage)
        
        content = message.get('content')
        if not isinstance(content, str):
            raise ExternalCallFailure("Model response contains no text content", stage=stage)
        
        if not content.strip():
            raise ExternalCallFailure("Model returned an empty completion", stage=stage)
        
        return content
