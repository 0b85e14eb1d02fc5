import json
import random

import pytest

from app.services.questions import FALLBACK_QUESTIONS, GenerationError, QuestionSupply
from app.services.questions.generator import GroqQuestionGenerator
from app.services.questions.similarity import similarity

from conftest import SEED_QUESTIONS

G1 = "Who is the most likely to accidentally adopt a family of raccoons?"
G2 = "Who is the most likely to become an astronaut and plant potatoes on Mars?"
G3 = "Who is the most likely to befriend every barista in the whole city?"
G4 = "Who is the most likely to quit their job to become a professional juggler?"
G5 = "Who is the most likely to write an opera about their grocery list?"
G5_NEAR = "Who is the most likely to write an opera about their grocery lists?"


class FakeGenerator:
    """Returns scripted batches; an Exception entry is raised instead."""

    def __init__(self, *batches):
        self.batches = list(batches)
        self.calls = []

    def generate(self, count, rng):
        self.calls.append(count)
        if not self.batches:
            raise GenerationError('script exhausted')
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return list(batch)


def make_supply(seed=(), fallback=(), generator=None, **kwargs):
    return QuestionSupply(seed_pool=seed, fallback=fallback, generator=generator,
                          rng=random.Random(0), **kwargs)


def test_insufficient_supply_fails_without_exception():
    supply = make_supply(seed=SEED_QUESTIONS[:2])
    assert supply.acquire('room1', 3) is None
    # nothing stays reserved after a failed call
    assert supply.stats()['ledger'] == 0
    assert sorted(supply.acquire('room1', 2)) == sorted(SEED_QUESTIONS[:2])


def test_zero_count_returns_empty():
    assert make_supply().acquire('room1', 0) == []


def test_seed_pool_then_fallback_list():
    supply = make_supply(seed=SEED_QUESTIONS[:2], fallback=FALLBACK_QUESTIONS)
    questions = supply.acquire('room1', 3)
    assert len(questions) == 3
    assert set(SEED_QUESTIONS[:2]) <= set(questions)
    assert len(set(questions) & set(FALLBACK_QUESTIONS)) == 1


def test_global_uniqueness_across_rooms():
    supply = make_supply(seed=SEED_QUESTIONS, fallback=FALLBACK_QUESTIONS)
    handed_out = []
    for i in range(10):
        questions = supply.acquire(f'room{i % 3}', 4)
        if questions is None:
            break
        handed_out.extend(questions)
    assert len(handed_out) == len(set(handed_out))
    assert len(handed_out) <= len(SEED_QUESTIONS) + len(FALLBACK_QUESTIONS)
    assert supply.acquire('late', 4) is None


def test_seed_pool_is_deduplicated():
    supply = make_supply(seed=[SEED_QUESTIONS[0], SEED_QUESTIONS[0], SEED_QUESTIONS[1]])
    assert supply.seed_pool == (SEED_QUESTIONS[0], SEED_QUESTIONS[1])


def test_generated_surplus_goes_to_prefetch_cache():
    generator = FakeGenerator([G1, G2, G3, G4])
    supply = make_supply(generator=generator, surplus=2)
    assert supply.acquire('room1', 2) == [G1, G2]
    assert generator.calls == [4]
    assert supply.cached() == [G3, G4]

    assert supply.acquire('room2', 1) == [G3]
    assert generator.calls == [4]
    assert supply.cached() == [G4]


def test_prefetch_cache_is_bounded():
    generator = FakeGenerator([G1, G2, G3, G4, G5])
    supply = make_supply(generator=generator, surplus=4, cache_max=2)
    supply.acquire('room1', 1)
    assert len(supply.cached()) == 2


def test_generation_retries_on_errors_and_duplicates():
    generator = FakeGenerator(
        [G5],
        GenerationError('timeout'),
        [G5, G5_NEAR],
        [G1],
    )
    supply = make_supply(generator=generator, surplus=0)
    assert supply.acquire('room1', 1) == [G5]
    assert supply.acquire('room2', 1) == [G1]
    assert len(generator.calls) == 4
    assert not supply.is_used(G5_NEAR)


def test_near_duplicates_never_both_enter_ledger():
    assert similarity(G5, G5_NEAR) > 0.7
    generator = FakeGenerator([G1, G5], [G5_NEAR, G2])
    supply = make_supply(generator=generator, surplus=1)
    assert supply.acquire('room1', 1) == [G1]
    assert supply.cached() == [G5]
    assert supply.acquire('room2', 2) == [G5, G2]
    assert supply.is_used(G5)
    assert not supply.is_used(G5_NEAR)


def test_falls_back_to_local_pool_after_max_attempts():
    generator = FakeGenerator(*[GenerationError('down')] * 5)
    supply = make_supply(seed=SEED_QUESTIONS[:1], generator=generator, max_attempts=3)
    assert supply.acquire('room1', 1) == SEED_QUESTIONS[:1]
    assert len(generator.calls) == 3


def test_partial_generation_is_topped_up_from_seed_pool():
    generator = FakeGenerator([G1])
    supply = make_supply(seed=SEED_QUESTIONS[:3], generator=generator, max_attempts=1, surplus=0)
    questions = supply.acquire('room1', 3)
    assert questions[0] == G1
    assert len(set(questions)) == 3


def test_failed_acquire_returns_generated_questions_to_cache():
    generator = FakeGenerator([G1])
    supply = make_supply(generator=generator, max_attempts=1, surplus=0)
    assert supply.acquire('room1', 2) is None
    assert not supply.is_used(G1)
    assert supply.cached() == [G1]


def test_release_room_keeps_ledger():
    supply = make_supply(seed=SEED_QUESTIONS[:2])
    questions = supply.acquire('room1', 2)
    supply.release_room('room1')
    assert supply.stats()['rooms'] == 0
    assert all(supply.is_used(q) for q in questions)
    assert supply.acquire('room2', 1) is None


def test_from_config_without_key_has_no_generator(tmp_path):
    seed_file = tmp_path / 'questions.json'
    seed_file.write_text(json.dumps([
        {'question': SEED_QUESTIONS[0], 'specialQuestion': SEED_QUESTIONS[1]},
        {'question': SEED_QUESTIONS[0], 'specialQuestion': SEED_QUESTIONS[2]},
    ]))
    supply = QuestionSupply.from_config({'QUESTIONS_FILE': str(seed_file), 'GROQ_API_KEY': None})
    assert supply.generator is None
    assert supply.seed_pool == tuple(SEED_QUESTIONS[:3])
    assert supply.max_attempts == 10
    assert supply.threshold == pytest.approx(0.7)


def test_from_config_with_key_builds_groq_generator(tmp_path):
    supply = QuestionSupply.from_config({
        'QUESTIONS_FILE': str(tmp_path / 'missing.json'),
        'GROQ_API_KEY': 'secret',
        'GROQ_API_URL': 'https://example.invalid/v1/chat/completions',
        'GROQ_MODEL': 'test-model',
        'GENERATION_TIMEOUT_SEC': 5,
    })
    assert isinstance(supply.generator, GroqQuestionGenerator)
    assert supply.generator.timeout == 5
    assert supply.seed_pool == ()


def test_seed_load_failure_degrades_to_empty_pool(tmp_path):
    from app.services.questions.seed import load_seed_pool

    broken = tmp_path / 'questions.json'
    broken.write_text('{not json')
    assert load_seed_pool(str(broken)) == []
    assert load_seed_pool(str(tmp_path / 'absent.json')) == []


def test_seed_flattening_accepts_plain_strings():
    from app.services.questions.seed import flatten_questions

    assert flatten_questions([SEED_QUESTIONS[0], {'question': SEED_QUESTIONS[1], 'rank': 3}, 7]) == SEED_QUESTIONS[:2]
