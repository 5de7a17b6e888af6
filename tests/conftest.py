from __future__ import annotations

import base64
import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC = _REPO_ROOT / "src"
for _p in (_SRC, _REPO_ROOT):
    if _p.exists() and str(_p) not in sys.path:
        sys.path.insert(0, str(_p))

from programs.settings import Settings  # noqa: E402


class FakeRecordSource:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None, errors: Optional[Dict[str, Exception]] = None) -> None:
        self.tables = tables or {}
        self.errors = errors or {}
        self.calls: List[str] = []

    def fetch_records(self, table: str, *, max_records: int) -> List[Dict[str, Any]]:
        self.calls.append(table)
        if table in self.errors:
            raise self.errors[table]
        return list(self.tables.get(table, []))[:max_records]


class FakeBlobStore:
    def __init__(self, objects: Optional[Dict[str, bytes]] = None) -> None:
        self.objects: Dict[str, bytes] = dict(objects or {})
        self.puts: List[str] = []
        self.content_types: Dict[str, str] = {}

    def exists(self, path: str) -> bool:
        return path in self.objects

    def put(self, path: str, data: bytes, *, content_type: str) -> str:
        self.objects[path] = data
        self.content_types[path] = content_type
        self.puts.append(path)
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        return f"https://blob.test/{path}"

    def download(self, path: str) -> bytes:
        return self.objects[path]

    def json(self, path: str) -> Any:
        return json.loads(self.objects[path].decode("utf-8"))


class ScriptedTextModel:
    """
    `predict` replies come from a list (or a function of the rendered prompt); vision answers from `vision`.

    The rendered prompt starts with `[SignatureName]`, then the signature docstring,
    then one `name:` block per input, so routers can match on any of them.
    """

    def __init__(
        self,
        replies: Optional[List[str]] = None,
        *,
        reply_fn: Optional[Callable[[str], str]] = None,
        vision: Optional[Callable[[str], str]] = None,
        model_name: str = "fake-text",
    ) -> None:
        self.replies = list(replies or [])
        self.reply_fn = reply_fn
        self.vision = vision
        self.model_name = model_name
        self.prompts: List[str] = []
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.questions: List[str] = []

    def predict(self, signature: Any, **inputs: Any) -> str:
        blocks = [f"{name}:\n{value}" for name, value in inputs.items()]
        prompt = "\n\n".join([f"[{signature.__name__}]", signature.__doc__ or "", *blocks])
        self.prompts.append(prompt)
        self.calls.append((signature.__name__, dict(inputs)))
        if self.reply_fn is not None:
            return self.reply_fn(prompt)
        if not self.replies:
            raise AssertionError("unexpected model call")
        return self.replies.pop(0)

    def ask_about_image(self, image_b64: str, question: str) -> str:
        self.questions.append(question)
        if self.vision is None:
            return "yes"
        return self.vision(question)


class FakeImageGenerator:
    def __init__(self) -> None:
        self.model_name = "fake-image"
        self.prompts: List[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return base64.b64encode(f"png-{len(self.prompts)}".encode()).decode()


def profile_payload(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "age": "42",
        "gender_presentation": "female",
        "build": "average build",
        "skin_tone": "olive",
        "hair_texture": "wavy",
        "hair": "shoulder-length dark brown hair",
        "eyes": "brown eyes",
        "facial_features": "not specified",
        "clothing_type": "knitted jumper",
        "clothing_color": "auto",
        "background": "auto",
        "socioeconomic": "average",
        "glam_level": "low",
        "retouching": "none",
        "origin": "not specified",
        "style_context": "not specified",
        "notes": "",
    }
    payload.update(overrides)
    return payload


def profile_json(**overrides: Any) -> str:
    return json.dumps(profile_payload(**overrides))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        run_secret="s3cret",
        openai_api_key="sk-test",
        retry_base_delay_sec=0.0,
        post_generation_delay_sec=0.0,
        case_throttle_sec=0.0,
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Callable[[float], None]:
    return sleeps.append
