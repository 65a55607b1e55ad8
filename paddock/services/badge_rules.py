import math
from typing import Callable, List, Set

from paddock.services.statistics import DriverStatisticsSnapshot, RaceRecord

# ==============================================================================
# EVALUADOR DE ELEGIBILIDAD (FUNCIONES PURAS)
# ==============================================================================
# Cada regla recibe el snapshot y devuelve los slugs que concede. Se evalúan
# por separado: añadir una regla nueva no toca las demás.

Rule = Callable[[DriverStatisticsSnapshot], Set[str]]

RULES: List[Rule] = []


def rule(fn: Rule) -> Rule:
    RULES.append(fn)
    return fn


def has_streak(records: List[RaceRecord], length: int, predicate) -> bool:
    """Busca una ventana de `length` carreras seguidas que cumplan el predicado, en TODO el historial."""
    if len(records) < length:
        return False
    for i in range(len(records) - length + 1):
        if all(predicate(r) for r in records[i:i + length]):
            return True
    return False


# --- PRESENCIA ---
@rule
def presence_badges(stats: DriverStatisticsSnapshot) -> Set[str]:
    unlocks = set()
    if stats.total_races >= 1: unlocks.add("first_race")
    if stats.wins >= 1: unlocks.add("first_win")
    if stats.podiums >= 1: unlocks.add("first_podium")
    return unlocks


# --- ORDEN CRONOLÓGICO ---
@rule
def late_bloomer(stats: DriverStatisticsSnapshot) -> Set[str]:
    history = stats.chronological()
    first_podium = next((i for i, r in enumerate(history) if r.position <= 3), None)
    if first_podium is not None and first_podium >= 3:
        return {"late_bloomer"}
    return set()


# --- RACHAS ---
@rule
def streak_badges(stats: DriverStatisticsSnapshot) -> Set[str]:
    unlocks = set()
    history = stats.chronological()
    if has_streak(history, 2, lambda r: r.position == 1): unlocks.add("back_to_back")
    if has_streak(history, 3, lambda r: r.position <= 3): unlocks.add("podium_run")
    return unlocks


# --- POR LIGA (cada liga se evalúa por separado) ---
@rule
def season_badges(stats: DriverStatisticsSnapshot) -> Set[str]:
    unlocks = set()
    for league_id in stats.league_ids():
        season = stats.for_league(league_id)

        if sum(1 for r in season if r.position <= 5) >= 3:
            unlocks.add("top_5_regular")
        if sum(r.points for r in season) >= 100:
            unlocks.add("points_scorer")
        if sum(1 for r in season if r.position <= math.ceil(r.field_size / 2)) >= 4:
            unlocks.add("top_half_hero")
        # Insignia de broma de la liga: último 3 veces
        if sum(1 for r in season if r.position == r.field_size) >= 3:
            unlocks.add("plum_tomato_champion")
        if sum(1 for r in season if r.qualifying_position is not None and r.qualifying_position <= 3) >= 5:
            unlocks.add("quali_specialist")
    return unlocks


# --- DISPERSIÓN ---
@rule
def the_yo_yo(stats: DriverStatisticsSnapshot) -> Set[str]:
    positions = [r.position for r in stats.results]
    if len(positions) >= 2 and max(positions) - min(positions) >= 5:
        return {"the_yo_yo"}
    return set()


# --- CLASIFICACIÓN (sólo si hay datos de quali) ---
@rule
def qualifying_badges(stats: DriverStatisticsSnapshot) -> Set[str]:
    unlocks = set()
    if not stats.has_qualifying_data:
        return unlocks

    quali = [r for r in stats.results if r.qualifying_position is not None]
    if any(r.qualifying_position == 1 for r in quali): unlocks.add("pole_position")
    if any(r.qualifying_position - r.position >= 3 for r in quali): unlocks.add("grid_climber")
    if any(r.qualifying_position == 1 and r.position == 1 for r in quali): unlocks.add("perfect_weekend")
    return unlocks


def eligible_badges(stats: DriverStatisticsSnapshot) -> Set[str]:
    """Qué debería tener HOY el piloto según sus resultados."""
    eligible: Set[str] = set()
    if stats.total_races == 0:
        return eligible
    for check in RULES:
        eligible.update(check(stats))
    return eligible
