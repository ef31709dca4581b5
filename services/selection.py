"""
Question selection for new sessions.

The functions here are pure: given the ids a quiz currently offers and a
seed, they always produce the same ordered, duplicate-free list. Only
QuestionSelector talks to storage, and only to read.
"""
import random
from enum import Enum
from typing import Iterable, List, Sequence

from core.config import settings
from core.logger import logger


class SelectionMode(str, Enum):
    NEVER_ASKED = "unanswered"
    PREVIOUSLY_INCORRECT = "incorrect"
    RANDOM = "random"


def parse_selection_mode(value) -> SelectionMode:
    """Map user input to a SelectionMode, falling back to the configured default."""
    if isinstance(value, SelectionMode):
        return value
    try:
        return SelectionMode(str(value).strip().lower())
    except ValueError:
        try:
            default = SelectionMode(settings.DEFAULT_SELECTION_MODE)
        except ValueError:
            default = SelectionMode.RANDOM
        logger.warning("Unknown selection mode, using default", requested=value, mode=default.value)
        return default


def clamp_question_count(count: int) -> int:
    return max(settings.MIN_QUESTION_COUNT, min(settings.MAX_QUESTION_COUNT, int(count)))


class SeededShuffler:
    """Deterministic permutations from an integer seed.

    The generator state carries over between calls, so permuting the
    primary pool and then the fallback pool yields a different (but still
    reproducible) order for the second one.
    """

    def __init__(self, seed: int):
        self.seed = seed
        self._rng = random.Random(seed)

    def permute(self, ids: Iterable[int]) -> List[int]:
        items = sorted(ids)
        self._rng.shuffle(items)
        return items


def select_question_ids(
    primary_ids: Iterable[int],
    all_ids: Sequence[int],
    count: int,
    seed: int,
) -> List[int]:
    """Draw up to ``count`` ids, primary pool first, topped up from ``all_ids``."""
    if count <= 0:
        return []

    shuffler = SeededShuffler(seed)
    selected = shuffler.permute(set(primary_ids))

    if len(selected) >= count:
        return selected[:count]

    chosen = set(selected)
    for question_id in shuffler.permute(set(all_ids)):
        if len(selected) >= count:
            break
        if question_id in chosen:
            continue
        selected.append(question_id)
        chosen.add(question_id)

    return selected


class QuestionSelector:
    def __init__(self, pool):
        self.pool = pool

    async def select(self, quiz_id: int, count: int, mode: SelectionMode, seed: int) -> List[int]:
        mode = parse_selection_mode(mode)
        all_ids = await self.pool.all_question_ids(quiz_id)

        if mode == SelectionMode.RANDOM:
            primary = all_ids
        else:
            primary = await self.pool.primary_pool(quiz_id, mode)

        selected = select_question_ids(primary, all_ids, count, seed)
        logger.debug(
            "Questions selected",
            quiz_id=quiz_id,
            mode=mode.value,
            primary=len(primary),
            total=len(all_ids),
            selected=len(selected),
        )
        return selected
