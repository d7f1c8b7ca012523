"""
Saisons de facturation (trimestres décalés): hiver déc-fév, printemps mar-mai, été juin-août, automne sept-nov.
Décembre appartient à l'hiver de l'année suivante (déc. 2024 -> winter 2025).
"""
from datetime import date, datetime, timezone
from typing import Literal, Optional, Tuple, Union

SeasonName = Literal["winter", "spring", "summer", "fall"]

SEASON_NAMES = ("winter", "spring", "summer", "fall")


def season_for(when: Optional[Union[date, datetime]] = None) -> Tuple[int, SeasonName]:
    """Retourne (season_year, season_name) pour une date (UTC courante par défaut)."""
    when = when or datetime.now(timezone.utc)
    month = when.month
    if month == 12:
        return when.year + 1, "winter"
    if month <= 2:
        return when.year, "winter"
    if month <= 5:
        return when.year, "spring"
    if month <= 8:
        return when.year, "summer"
    return when.year, "fall"
