import logging

from sqlalchemy.orm import Session

from paddock.db.models.badge import Badge, BadgeRarity, BadgeCategory

logger = logging.getLogger(__name__)

# ==============================================================================
# CATÁLOGO DE INSIGNIAS
# ==============================================================================
# El orden de esta lista es el orden en que se conceden/listan.

BADGE_DEFINITIONS = [
    # --- RESULT (recalculables desde el libro de resultados) ---
    {"slug": "first_race", "name": "Lights Out", "desc": "Completar tu primera carrera.", "icon": "Flag", "rare": "COMMON", "cat": "RESULT"},
    {"slug": "first_win", "name": "Top Step", "desc": "Ganar una carrera.", "icon": "Trophy", "rare": "RARE", "cat": "RESULT"},
    {"slug": "first_podium", "name": "Champagne Moment", "desc": "Terminar en el podio.", "icon": "Medal", "rare": "COMMON", "cat": "RESULT"},
    {"slug": "late_bloomer", "name": "Late Bloomer", "desc": "Primer podio tras al menos 3 carreras sin él.", "icon": "Sprout", "rare": "RARE", "cat": "RESULT"},
    {"slug": "back_to_back", "name": "Back to Back", "desc": "Dos victorias seguidas.", "icon": "Repeat", "rare": "EPIC", "cat": "RESULT"},
    {"slug": "podium_run", "name": "Podium Run", "desc": "Tres podios seguidos.", "icon": "TrendingUp", "rare": "EPIC", "cat": "RESULT"},
    {"slug": "top_5_regular", "name": "Top 5 Regular", "desc": "3 top-5 en una misma liga.", "icon": "ListOrdered", "rare": "COMMON", "cat": "RESULT"},
    {"slug": "points_scorer", "name": "Points Scorer", "desc": "100 puntos en una misma liga.", "icon": "Battery", "rare": "RARE", "cat": "RESULT"},
    {"slug": "top_half_hero", "name": "Top Half Hero", "desc": "4 carreras en la mitad alta de la parrilla en una liga.", "icon": "ArrowUpCircle", "rare": "COMMON", "cat": "RESULT"},
    {"slug": "plum_tomato_champion", "name": "Plum Tomato Champion", "desc": "Último 3 veces en una misma liga.", "icon": "Apple", "rare": "HIDDEN", "cat": "RESULT"},
    {"slug": "quali_specialist", "name": "Quali Specialist", "desc": "5 clasificaciones en el top 3 en una liga.", "icon": "Timer", "rare": "EPIC", "cat": "RESULT"},
    {"slug": "the_yo_yo", "name": "The Yo-Yo", "desc": "5 o más posiciones entre tu mejor y tu peor resultado.", "icon": "ArrowUpDown", "rare": "COMMON", "cat": "RESULT"},
    {"slug": "pole_position", "name": "Pole Position", "desc": "Clasificar primero.", "icon": "Zap", "rare": "RARE", "cat": "RESULT"},
    {"slug": "grid_climber", "name": "Grid Climber", "desc": "Ganar 3 o más posiciones respecto a la parrilla.", "icon": "ChevronsUp", "rare": "RARE", "cat": "RESULT"},
    {"slug": "perfect_weekend", "name": "Perfect Weekend", "desc": "Pole y victoria en la misma carrera.", "icon": "Crown", "rare": "LEGENDARY", "cat": "RESULT"},

    # --- SEASON_END (una por liga completada) ---
    {"slug": "season_complete", "name": "Season Complete", "desc": "Correr todas las carreras de la liga.", "icon": "CalendarCheck", "rare": "COMMON", "cat": "SEASON_END"},
    {"slug": "iron_driver", "name": "Iron Driver", "desc": "Asistencia perfecta en la temporada.", "icon": "Shield", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "never_quit", "name": "Never Quit", "desc": "Asistencia perfecta terminando siempre P8 o peor.", "icon": "HeartHandshake", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "league_laughs_never_quit", "name": "League Laughs, Never Quit", "desc": "Asistencia perfecta siempre en la mitad baja.", "icon": "Smile", "rare": "HIDDEN", "cat": "SEASON_END"},
    {"slug": "last_but_loyal", "name": "Last but Loyal", "desc": "Último de la general sin faltar a ninguna carrera.", "icon": "Anchor", "rare": "HIDDEN", "cat": "SEASON_END"},
    {"slug": "league_champion", "name": "League Champion", "desc": "Ganar la liga.", "icon": "Trophy", "rare": "LEGENDARY", "cat": "SEASON_END"},
    {"slug": "runner_up", "name": "Runner Up", "desc": "Segundo en la general.", "icon": "Medal", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "third_overall", "name": "Third Overall", "desc": "Tercero en la general.", "icon": "Medal", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "best_of_rest", "name": "Best of the Rest", "desc": "Cuarto en la general.", "icon": "Award", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "dominator", "name": "Dominator", "desc": "Más victorias de la temporada.", "icon": "Flame", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "podium_king", "name": "Podium King", "desc": "Más podios de la temporada.", "icon": "Crown", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "the_flash", "name": "The Flash", "desc": "Más poles de la temporada.", "icon": "Zap", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "quali_merchant", "name": "Quali Merchant", "desc": "Más veces clasificando por delante de tu resultado final.", "icon": "Store", "rare": "HIDDEN", "cat": "SEASON_END"},
    {"slug": "most_dramatic_swing", "name": "Most Dramatic Swing", "desc": "La mayor remontada desde la parrilla de la temporada.", "icon": "Rocket", "rare": "EPIC", "cat": "SEASON_END"},
    # Tiers, fin de temporada
    {"slug": "s_rank_champion", "name": "S-Rank Champion", "desc": "Primero del tier 1 al cerrar la temporada.", "icon": "Gem", "rare": "LEGENDARY", "cat": "SEASON_END"},
    {"slug": "a_rank_champion", "name": "A-Rank Champion", "desc": "Primero del tier 2 al cerrar la temporada.", "icon": "Gem", "rare": "EPIC", "cat": "SEASON_END"},
    {"slug": "b_rank_champion", "name": "B-Rank Champion", "desc": "Primero del tier 3 al cerrar la temporada.", "icon": "Gem", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "c_rank_champion", "name": "C-Rank Champion", "desc": "Primero del tier 4 al cerrar la temporada.", "icon": "Gem", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "d_rank_champion", "name": "D-Rank Champion", "desc": "Primero del tier 5 al cerrar la temporada.", "icon": "Gem", "rare": "COMMON", "cat": "SEASON_END"},
    {"slug": "safe_hands", "name": "Safe Hands", "desc": "Ningún descenso en toda la temporada.", "icon": "ShieldCheck", "rare": "RARE", "cat": "SEASON_END"},
    {"slug": "untouchable", "name": "Untouchable", "desc": "Toda la temporada en el tier 1 sin descender.", "icon": "Lock", "rare": "LEGENDARY", "cat": "SEASON_END"},
    {"slug": "elevator_operator", "name": "Elevator Operator", "desc": "Subir y bajar en la misma temporada.", "icon": "ArrowUpDown", "rare": "HIDDEN", "cat": "SEASON_END"},

    # --- TIER (tras cada shuffle, historial acumulado) ---
    {"slug": "back_on_the_up", "name": "Back on the Up", "desc": "Ascender después de haber descendido.", "icon": "TrendingUp", "rare": "RARE", "cat": "TIER"},
    {"slug": "double_jump", "name": "Double Jump", "desc": "Ascender en dos shuffles seguidos.", "icon": "ChevronsUp", "rare": "EPIC", "cat": "TIER"},
    {"slug": "bounced_back", "name": "Bounced Back", "desc": "Ascender justo en el shuffle siguiente a un descenso.", "icon": "RotateCcw", "rare": "RARE", "cat": "TIER"},
    {"slug": "summit", "name": "Summit", "desc": "Ascender al tier 1.", "icon": "Mountain", "rare": "EPIC", "cat": "TIER"},
    {"slug": "held_the_line", "name": "Held the Line", "desc": "Un shuffle sin moverte después de haberte movido.", "icon": "Minus", "rare": "COMMON", "cat": "TIER"},
    {"slug": "tier_leader", "name": "Tier Leader", "desc": "Primero de tu tier en un shuffle.", "icon": "Star", "rare": "RARE", "cat": "TIER"},
    {"slug": "great_escape", "name": "Great Escape", "desc": "Acabar un shuffle en zona de descenso y no descender.", "icon": "DoorOpen", "rare": "HIDDEN", "cat": "TIER"},
]

# Revocables por el sincronizador (lista explícita, no "todo lo que no sea elegible")
REVOCABLE_BADGE_SLUGS = [d["slug"] for d in BADGE_DEFINITIONS if d["cat"] == "RESULT"]

SEASON_END_BADGE_SLUGS = [
    "season_complete", "iron_driver", "never_quit", "league_laughs_never_quit",
    "last_but_loyal", "league_champion", "runner_up", "third_overall", "best_of_rest",
    "dominator", "podium_king", "the_flash", "quali_merchant", "most_dramatic_swing",
]

# Rango por número de tier (el mismo catálogo que muestra la UI)
TIER_RANK_CODES = {1: "s", 2: "a", 3: "b", 4: "c", 5: "d"}

TIER_SEASON_BADGE_SLUGS = [f"{code}_rank_champion" for code in TIER_RANK_CODES.values()] + [
    "safe_hands", "untouchable", "elevator_operator",
]

TIER_SHUFFLE_BADGE_SLUGS = [d["slug"] for d in BADGE_DEFINITIONS if d["cat"] == "TIER"]

BADGE_ORDER = {d["slug"]: i for i, d in enumerate(BADGE_DEFINITIONS)}


def tier_champion_slug(tier_number: int):
    """Slug del campeón de un tier, o None si el tier no tiene rango asignado."""
    code = TIER_RANK_CODES.get(tier_number)
    return f"{code}_rank_champion" if code else None


def ordered(slugs) -> list[str]:
    return sorted(slugs, key=lambda s: (BADGE_ORDER.get(s, len(BADGE_ORDER)), s))


def seed_badges(db: Session):
    """Sincroniza la lista de definiciones con la DB"""
    logger.info("🌱 Sembrando insignias...")
    for d in BADGE_DEFINITIONS:
        exists = db.query(Badge).filter(Badge.slug == d["slug"]).first()
        if not exists:
            db.add(Badge(
                slug=d["slug"],
                name=d["name"],
                description=d["desc"],
                icon=d["icon"],
                rarity=BadgeRarity(d["rare"]),
                category=BadgeCategory(d["cat"]),
            ))
        else:
            exists.name = d["name"]
            exists.description = d["desc"]
            exists.icon = d["icon"]
            exists.rarity = BadgeRarity(d["rare"])
            exists.category = BadgeCategory(d["cat"])

    db.commit()
    logger.info("✅ Insignias actualizadas (%s).", len(BADGE_DEFINITIONS))


def badges_by_slug(db: Session, slugs) -> dict[str, Badge]:
    slugs = list(slugs)
    if not slugs:
        return {}
    rows = db.query(Badge).filter(Badge.slug.in_(slugs)).all()
    found = {b.slug: b for b in rows}
    for slug in slugs:
        if slug not in found:
            logger.warning("⚠️ Insignia '%s' sin entrada en el catálogo, se ignora.", slug)
    return found
