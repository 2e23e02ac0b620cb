"""
Shared fixtures: a scripted catalog client and zero-delay configuration
"""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from question_harvester.config_loader import HarvestConfig
from question_harvester.http_client import APIResponse, normalise_payload


class ScriptedCatalogClient:
    """Stand-in for CatalogClient driven by a responder(mode, body) function"""

    def __init__(self, responder: Callable[[Optional[str], Dict[str, Any]], Any]):
        self.responder = responder
        self.calls: List[Tuple[Optional[str], Dict[str, Any]]] = []
        self.closed = False

    def call(self, mode: Optional[str], body: Optional[Dict[str, Any]] = None) -> APIResponse:
        body = dict(body or {})
        self.calls.append((mode, body))
        raw = self.responder(mode, body)
        if isinstance(raw, Exception):
            raise raw
        return APIResponse(raw_data=raw, items=normalise_payload(raw, mode), status_code=200)

    def question_calls(self) -> List[Dict[str, Any]]:
        return [body for mode, body in self.calls if mode is None]

    def close_connection(self) -> None:
        self.closed = True


def questions_page(*texts: str, start_id: int = 1) -> Dict[str, Any]:
    """Question-listing response in the catalog's nested envelope"""
    return {
        'data': {
            'questions': [
                {
                    'id': start_id + index,
                    'question_text': text,
                    'options': {'a': 'one', 'b': 'two'},
                    'correct_answer': 'a',
                    'explanation': f"because {index}"
                }
                for index, text in enumerate(texts)
            ]
        }
    }


EMPTY_PAGE = {'data': {'questions': []}}


@pytest.fixture
def scripted_client():
    return ScriptedCatalogClient


@pytest.fixture
def make_config(tmp_path: Path):
    def factory(**overrides) -> HarvestConfig:
        values = {
            'api_name': 'myquest',
            'base_url': 'https://api.test.com/api/questions',
            'token': 'test_token_123',
            'exam': 'JAMB',
            'per_subject_target': 2,
            'polite_delay_ms': 0,
            'variant_delay_ms': 0,
            'checkpoint_path': tmp_path / 'checkpoint_JAMB.json',
            'output_dir': tmp_path / 'outputs',
        }
        values.update(overrides)
        return HarvestConfig(**values)
    return factory
