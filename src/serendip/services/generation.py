"""Evaluator backends: the language model used to judge and explain connections."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from serendip.metrics.observability import get_logger

LOGGER = get_logger("evaluator")


@dataclass(frozen=True)
class EvaluatorConfig:
    """Configuration for the local evaluator model."""

    model: str = "Qwen/Qwen2.5-1.8B-Instruct"
    max_new_tokens: int = 512
    temperature: float = 0.7
    use_model: bool = False
    device: str | None = None


@dataclass(frozen=True)
class EvaluatorResponse:
    success: bool
    text: str | None = None


class Evaluator(Protocol):
    """Single request/response text generation."""

    def generate(self, prompt: str, system_prompt: str | None = None) -> EvaluatorResponse:
        """Return the model's answer to ``prompt``."""


class TransformersEvaluator:
    """Evaluator that optionally calls into a local causal LM via Transformers.

    When the model is disabled or cannot be loaded every call answers with
    ``EvaluatorResponse(success=False)``, which callers treat as "no judgment".
    """

    def __init__(self, config: EvaluatorConfig | None = None) -> None:
        self._config = config or EvaluatorConfig()
        self._tokenizer = None
        self._model = None
        if not self._config.use_model:
            LOGGER.info("evaluator.disabled")
            return
        try:
            from transformers import AutoModelForCausalLM, AutoTokenizer

            self._tokenizer = AutoTokenizer.from_pretrained(
                self._config.model,
                trust_remote_code=True,
            )
            self._model = AutoModelForCausalLM.from_pretrained(
                self._config.model,
                trust_remote_code=True,
            )
            if self._tokenizer.pad_token is None and self._tokenizer.eos_token is not None:
                self._tokenizer.pad_token = self._tokenizer.eos_token
            if getattr(self._model.config, "pad_token_id", None) is None and self._tokenizer.pad_token_id is not None:
                self._model.config.pad_token_id = self._tokenizer.pad_token_id
            if self._config.device:
                self._model.to(self._config.device)
            LOGGER.info("evaluator.model_loaded", model=self._config.model)
        except Exception as exc:  # pragma: no cover
            LOGGER.warning("evaluator.model_unavailable", model=self._config.model, detail=str(exc))
            self._tokenizer = None
            self._model = None

    @property
    def available(self) -> bool:
        return self._tokenizer is not None and self._model is not None

    def generate(self, prompt: str, system_prompt: str | None = None) -> EvaluatorResponse:
        if not self.available:
            return EvaluatorResponse(success=False)
        import torch

        prompt_text = self._build_prompt(prompt, system_prompt)
        tokenized = self._tokenizer(prompt_text, return_tensors="pt", padding=True)
        input_ids = tokenized.input_ids
        attention_mask = tokenized.attention_mask
        prompt_length = input_ids.shape[1]
        if self._config.device:
            input_ids = input_ids.to(self._config.device)
            attention_mask = attention_mask.to(self._config.device)
        with torch.no_grad():
            output = self._model.generate(
                input_ids,
                attention_mask=attention_mask,
                max_new_tokens=self._config.max_new_tokens,
                temperature=self._config.temperature,
                do_sample=self._config.temperature > 0,
            )
        generated = self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)
        return EvaluatorResponse(success=True, text=generated.strip())

    def _build_prompt(self, prompt: str, system_prompt: str | None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        if hasattr(self._tokenizer, "apply_chat_template"):
            return self._tokenizer.apply_chat_template(
                messages,
                tokenize=False,
                add_generation_prompt=True,
            )
        system_block = f"{system_prompt}\n\n" if system_prompt else ""
        return f"{system_block}{prompt}\n"
