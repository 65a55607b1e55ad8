from datetime import datetime, timedelta

from paddock.services.badge_rules import eligible_badges, has_streak
from paddock.services.badge_sync import diff_badges
from paddock.services.statistics import RaceRecord, build_snapshot

START = datetime(2026, 3, 1)


def record(race_id, position, points=0, league_id=1, field_size=10, quali=None, day=None):
    return RaceRecord(
        race_id=race_id,
        position=position,
        points=points,
        qualifying_position=quali,
        race_date=START + timedelta(days=day if day is not None else race_id),
        league_id=league_id,
        field_size=field_size,
    )


def snapshot(*records):
    return build_snapshot(records)


def test_no_results_is_empty():
    assert eligible_badges(snapshot()) == set()


def test_presence_badges():
    eligible = eligible_badges(snapshot(record(1, 2)))
    assert {"first_race", "first_podium"} <= eligible
    assert "first_win" not in eligible


def test_streak_scans_full_history():
    # Gana las dos primeras y luego nada: back_to_back igualmente
    stats = snapshot(record(1, 1), record(2, 1), record(3, 6), record(4, 7), record(5, 8))
    assert "back_to_back" in eligible_badges(stats)


def test_streak_uses_chronological_order_not_insertion():
    # Las victorias no son consecutivas en el tiempo aunque lo sean en la lista
    stats = snapshot(record(1, 1, day=1), record(3, 1, day=10), record(2, 5, day=5))
    assert "back_to_back" not in eligible_badges(stats)


def test_has_streak_window():
    recs = [record(i, p) for i, p in enumerate([2, 1, 3, 4], start=1)]
    assert has_streak(recs, 3, lambda r: r.position <= 3)
    assert not has_streak(recs, 4, lambda r: r.position <= 3)
    assert not has_streak(recs[:1], 2, lambda r: True)


def test_late_bloomer_needs_three_races_before_first_podium():
    assert "late_bloomer" in eligible_badges(snapshot(record(1, 5), record(2, 6), record(3, 7), record(4, 2)))
    assert "late_bloomer" not in eligible_badges(snapshot(record(1, 5), record(2, 2)))


def test_points_scorer_is_scoped_per_league():
    stats = snapshot(
        record(1, 1, points=50, league_id=1),
        record(2, 1, points=50, league_id=1),
        record(3, 1, points=50, league_id=2),
    )
    assert "points_scorer" in eligible_badges(stats)

    stats = snapshot(
        record(1, 1, points=50, league_id=1),
        record(2, 1, points=40, league_id=2),
        record(3, 1, points=40, league_id=2),
    )
    assert "points_scorer" not in eligible_badges(stats)


def test_plum_tomato_needs_three_last_places():
    stats = snapshot(*(record(i, 8, field_size=8) for i in range(1, 4)))
    assert "plum_tomato_champion" in eligible_badges(stats)


def test_yo_yo_needs_spread_of_five():
    assert "the_yo_yo" in eligible_badges(snapshot(record(1, 1), record(2, 6)))
    assert "the_yo_yo" not in eligible_badges(snapshot(record(1, 1), record(2, 5)))


def test_qualifying_badges_only_with_data():
    assert not {"pole_position", "perfect_weekend"} & eligible_badges(snapshot(record(1, 1)))

    eligible = eligible_badges(snapshot(record(1, 1, quali=1), record(2, 2, quali=6)))
    assert {"pole_position", "perfect_weekend", "grid_climber"} <= eligible


def test_diff_only_revokes_revocable():
    diff = diff_badges({"first_race"}, {"first_race", "first_win", "league_champion", "custom_manual"})
    assert diff.to_award == set()
    assert diff.to_revoke == {"first_win"}


def test_diff_awards_missing():
    diff = diff_badges({"first_race", "first_win"}, set())
    assert diff.to_award == {"first_race", "first_win"}
    assert diff.to_revoke == set()


def test_podium_run_needs_three_in_a_row():
    assert "podium_run" in eligible_badges(snapshot(record(1, 3), record(2, 1), record(3, 2)))
    assert "podium_run" not in eligible_badges(snapshot(record(1, 2), record(2, 5), record(3, 3), record(4, 1)))


def test_top_5_regular_counts_within_one_league():
    assert "top_5_regular" in eligible_badges(snapshot(record(1, 5), record(2, 4), record(3, 1)))
    # Dos en una liga y una en otra no suman
    split = snapshot(record(1, 5), record(2, 4), record(3, 1, league_id=2))
    assert "top_5_regular" not in eligible_badges(split)


def test_top_half_hero_rounds_odd_fields_up():
    # En una parrilla de 5, P3 es mitad de arriba
    assert "top_half_hero" in eligible_badges(snapshot(*[record(i, 3, field_size=5) for i in range(1, 5)]))
    assert "top_half_hero" not in eligible_badges(snapshot(*[record(i, 4, field_size=5) for i in range(1, 5)]))
    assert "top_half_hero" not in eligible_badges(snapshot(*[record(i, 3, field_size=5) for i in range(1, 4)]))


def test_quali_specialist_counts_within_one_league():
    assert "quali_specialist" in eligible_badges(snapshot(*[record(i, 8, quali=3) for i in range(1, 6)]))
    split = [record(i, 8, quali=2) for i in range(1, 4)] + [record(i, 8, quali=1, league_id=2) for i in (4, 5)]
    assert "quali_specialist" not in eligible_badges(snapshot(*split))
    # Sin posición de clasificación no cuenta
    assert "quali_specialist" not in eligible_badges(snapshot(*[record(i, 8) for i in range(1, 6)]))
