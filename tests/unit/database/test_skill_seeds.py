"""
Unit tests for skill taxonomy seeding.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from core.exceptions import TransientProviderError
from core.llm.embedding_client import EmbeddingResult
from database.seeds.skills import COMMON_SKILLS, SEED_ALIAS_CONFIDENCE, seed_skills

SEED = [
    {'canonical_name': 'Python', 'category': 'programming_language', 'priority': 9,
     'description': 'Python programming language', 'aliases': ['py', 'Python3', 'PY']},
    {'canonical_name': 'Docker', 'category': 'tool', 'aliases': []},
]


@pytest.fixture
def repo():
    repo = MagicMock()
    repo.get_by_canonical_name.return_value = None
    repo.create_skill.side_effect = lambda **kwargs: SimpleNamespace(skill_id=len(repo.create_skill.mock_calls))
    return repo


def test_creates_skills_and_aliases(repo):
    result = seed_skills(repo, skills=SEED)

    assert result == {'created': 2, 'skipped': 0, 'aliases_created': 2}
    first = repo.create_skill.call_args_list[0].kwargs
    assert first['canonical_name'] == 'Python'
    assert first['category'] == 'programming_language'
    assert first['embedding'] is None
    assert first['metadata']['seeded'] is True
    aliases = [c.kwargs['alias_name'] for c in repo.create_alias.call_args_list]
    assert aliases == ['py', 'Python3']
    assert all(c.kwargs['confidence'] == SEED_ALIAS_CONFIDENCE for c in repo.create_alias.call_args_list)


def test_existing_skills_skipped(repo):
    repo.get_by_canonical_name.side_effect = lambda name: object() if name == 'Python' else None

    result = seed_skills(repo, skills=SEED)

    assert result['created'] == 1
    assert result['skipped'] == 1
    repo.create_alias.assert_not_called()


def test_embeds_name_and_description(repo):
    client = MagicMock()
    client.embed.return_value = EmbeddingResult(vector=[0.1, 0.2], model='m', dimensions=2)

    seed_skills(repo, embedding_client=client, skills=SEED[:1])

    client.embed.assert_called_once_with('Python Python programming language')
    assert repo.create_skill.call_args.kwargs['embedding'] == [0.1, 0.2]


def test_embedding_failure_still_creates_skill(repo):
    client = MagicMock()
    client.embed.side_effect = TransientProviderError("503")

    result = seed_skills(repo, embedding_client=client, skills=SEED[:1])

    assert result['created'] == 1
    assert repo.create_skill.call_args.kwargs['embedding'] is None


def test_default_seed_data_is_unique():
    names = [s['canonical_name'].lower() for s in COMMON_SKILLS]
    assert len(names) == len(set(names))
