"""Test helpers to stub the OpenAI Responses client used by classifier.py.

The stub parses the user content to extract the embedded transaction JSON and
returns whatever text the test's ``decide`` callable produces for it. Tests
provide ``decide`` to map each transaction dict to the raw ``output_text`` so
malformed and well-formed replies can be exercised the same way.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

BEGIN = "BEGIN_TRANSACTION_JSON\n"
END = "\nEND_TRANSACTION_JSON"


def extract_transaction(user_content: str) -> dict[str, Any]:
    b = user_content.find(BEGIN)
    e = user_content.rfind(END)
    if b == -1 or e == -1 or e <= b:
        raise AssertionError("classifier: user content missing embedded transaction JSON")
    return json.loads(user_content[b + len(BEGIN) : e])


def verdict_text(
    category: str,
    *,
    confidence: float = 0.95,
    is_income: bool = False,
    merchant: str | None = None,
    tags: list[str] | None = None,
    reasoning: str = "stubbed",
) -> str:
    return json.dumps(
        {
            "category": category,
            "confidence": confidence,
            "isIncome": is_income,
            "merchant": merchant,
            "tags": tags if tags is not None else ["stub"],
            "reasoning": reasoning,
        }
    )


class OpenAIStub:
    """Minimal stub matching the ``openai.OpenAI`` shape used by ``classifier.py``.

    Parameters
    ----------
    decide:
        Receives the transaction dict sent to the model and returns the
        ``output_text`` string, or raises to simulate a transport failure.
    calls_out:
        Appended with each call's kwargs for lightweight assertions.
    """

    def __init__(
        self,
        decide: Callable[[dict[str, Any]], str],
        calls_out: list[dict[str, Any]] | None = None,
    ) -> None:
        self._decide = decide
        self._calls = calls_out if calls_out is not None else []
        self.init_kwargs: dict[str, Any] = {}

        class _Responses:
            def __init__(self, outer: OpenAIStub) -> None:
                self._outer = outer

            def create(self, **kwargs):
                self._outer._calls.append(kwargs)
                text = self._outer._decide(extract_transaction(kwargs["input"]))

                class _Resp:
                    output_text: str

                resp = _Resp()
                resp.output_text = text
                return resp

        self.responses = _Responses(self)

    def factory(self) -> Callable[..., OpenAIStub]:
        """Return a callable to monkeypatch over ``statement_ingest.classifier.OpenAI``."""

        def _make(*_a: Any, **kw: Any) -> OpenAIStub:
            self.init_kwargs = kw
            return self

        return _make

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls
