"""
Quest lifecycle and character progression.

Quests move strictly forward: inactive -> active -> completed. Players
level up in a loop while their xp covers the next threshold, so a large
reward can grant several levels at once.
"""

from __future__ import annotations

import logging
import math

from tiledm.engine.errors import QuestTransitionError
from tiledm.models.player import ClassType, Player, abilities_for_level
from tiledm.models.zone import Quest, QuestStatus, Zone

logger = logging.getLogger(__name__)

XP_GROWTH = 1.5
MAX_HP_PER_LEVEL = 5


def advance_quest(quest: Quest, target: QuestStatus) -> Quest:
    """Move a quest exactly one step forward.

    Raises:
        QuestTransitionError: If ``target`` is not the next status
    """
    if target.rank != quest.status.rank + 1:
        raise QuestTransitionError(
            f"Quest '{quest.id}' cannot move from {quest.status.value} to {target.value}"
        )
    return quest.model_copy(update={"status": target})


def activate_quest(quest: Quest) -> Quest:
    return advance_quest(quest, QuestStatus.ACTIVE)


def complete_quest(quest: Quest) -> Quest:
    return advance_quest(quest, QuestStatus.COMPLETED)


def replace_quest(quests: list[Quest], updated: Quest) -> list[Quest]:
    """New quest list with ``updated`` swapped in by id"""
    return [updated if q.id == updated.id else q for q in quests]


def level_up(player: Player) -> Player:
    """Apply a single level-up.

    maxHp +5 (hp refilled), str +2 for Warriors else +1, int +2 for
    Wizards else +1, def +1, threshold grows by 1.5x and the spent xp is
    carried forward. Abilities are recomputed from the class table.
    """
    stats = player.stats
    new_level = stats.level + 1
    new_max_hp = stats.max_hp + MAX_HP_PER_LEVEL

    new_stats = stats.model_copy(
        update={
            "level": new_level,
            "xp": stats.xp - stats.next_level_xp,
            "next_level_xp": max(stats.next_level_xp + 1, math.floor(stats.next_level_xp * XP_GROWTH)),
            "max_hp": new_max_hp,
            "hp": new_max_hp,
            "strength": stats.strength + (2 if player.class_type == ClassType.WARRIOR else 1),
            "intelligence": stats.intelligence + (2 if player.class_type == ClassType.WIZARD else 1),
            "defense": stats.defense + 1,
        }
    )

    return player.model_copy(
        update={
            "stats": new_stats,
            "abilities": abilities_for_level(player.class_type, new_level),
        }
    )


def award_xp(player: Player, amount: int) -> tuple[Player, int]:
    """Grant xp and roll every level-up it pays for.

    Terminates because the threshold strictly increases each iteration.

    Returns:
        Tuple of (updated player, number of levels gained)
    """
    if amount < 0:
        raise ValueError("xp reward must be non-negative")

    player = player.model_copy(
        update={"stats": player.stats.model_copy(update={"xp": player.stats.xp + amount})}
    )

    levels = 0
    while player.stats.xp >= player.stats.next_level_xp:
        player = level_up(player)
        levels += 1

    if levels:
        logger.info(f"{player.name} gained {levels} level(s), now level {player.stats.level}")
    return player, levels


def zone_quests(zone: Zone, quests: list[Quest]) -> list[Quest]:
    """Quests handed out by NPCs living in this zone"""
    giver_ids = zone.npc_ids()
    return [q for q in quests if q.giver_id in giver_ids]


def is_zone_completed(zone: Zone, quests: list[Quest]) -> bool:
    """A zone is complete once every quest given in it is completed.

    A zone without quests counts as complete, so its exit is open.
    """
    return all(q.status == QuestStatus.COMPLETED for q in zone_quests(zone, quests))
