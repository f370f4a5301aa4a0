"""
Team identity normalization.

The schedule feed and the odds feed spell teams differently ("LA Lakers" vs
"Los Angeles Lakers", "Ole Miss Rebels" vs "Mississippi Rebels", "Ohio St"
vs "Ohio State"). Every name is reduced to a canonical key before two
records are compared:

1. lowercase, collapse every run of non-alphanumeric characters to a single
   space, trim
2. whole-name aliases (mascot-only names, common short forms)
3. leading-phrase substitutions ("la " -> "los angeles ")
4. inner-token substitutions ("st" -> "state" after the first token)
5. whole-name aliases once more on the expanded result

The alias data lives in an AliasTable so regional tables can be layered on
with AliasTable.extend() without touching the merge logic.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from mto.utils.logging import get_logger

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def _clean(name: Any) -> str:
    if not isinstance(name, str):
        return ""
    return _NON_ALNUM.sub(" ", name.lower()).strip()


# Mascot-only and shorthand names -> full canonical name.
# Mascots shared by teams in different leagues (Kings, Panthers, Giants,
# Jets, Cardinals, Rangers) are deliberately left out.
TEAM_NAME_ALIASES = {
    # NBA
    "hawks": "atlanta hawks",
    "celtics": "boston celtics",
    "nets": "brooklyn nets",
    "hornets": "charlotte hornets",
    "bulls": "chicago bulls",
    "cavaliers": "cleveland cavaliers",
    "cavs": "cleveland cavaliers",
    "mavericks": "dallas mavericks",
    "mavs": "dallas mavericks",
    "nuggets": "denver nuggets",
    "pistons": "detroit pistons",
    "warriors": "golden state warriors",
    "rockets": "houston rockets",
    "pacers": "indiana pacers",
    "clippers": "los angeles clippers",
    "lakers": "los angeles lakers",
    "grizzlies": "memphis grizzlies",
    "heat": "miami heat",
    "bucks": "milwaukee bucks",
    "timberwolves": "minnesota timberwolves",
    "twolves": "minnesota timberwolves",
    "pelicans": "new orleans pelicans",
    "knicks": "new york knicks",
    "thunder": "oklahoma city thunder",
    "magic": "orlando magic",
    "76ers": "philadelphia 76ers",
    "sixers": "philadelphia 76ers",
    "suns": "phoenix suns",
    "trail blazers": "portland trail blazers",
    "blazers": "portland trail blazers",
    "spurs": "san antonio spurs",
    "raptors": "toronto raptors",
    "jazz": "utah jazz",
    "wizards": "washington wizards",
    # NFL
    "bears": "chicago bears",
    "bengals": "cincinnati bengals",
    "bills": "buffalo bills",
    "broncos": "denver broncos",
    "browns": "cleveland browns",
    "buccaneers": "tampa bay buccaneers",
    "bucs": "tampa bay buccaneers",
    "chiefs": "kansas city chiefs",
    "colts": "indianapolis colts",
    "commanders": "washington commanders",
    "cowboys": "dallas cowboys",
    "dolphins": "miami dolphins",
    "falcons": "atlanta falcons",
    "49ers": "san francisco 49ers",
    "niners": "san francisco 49ers",
    "jaguars": "jacksonville jaguars",
    "packers": "green bay packers",
    "patriots": "new england patriots",
    "raiders": "las vegas raiders",
    "ravens": "baltimore ravens",
    "seahawks": "seattle seahawks",
    "steelers": "pittsburgh steelers",
    "texans": "houston texans",
    "titans": "tennessee titans",
    "vikings": "minnesota vikings",
    "chargers": "los angeles chargers",
    # NHL
    "bruins": "boston bruins",
    "canadiens": "montreal canadiens",
    "habs": "montreal canadiens",
    "maple leafs": "toronto maple leafs",
    "leafs": "toronto maple leafs",
    "blackhawks": "chicago blackhawks",
    "red wings": "detroit red wings",
    "penguins": "pittsburgh penguins",
    "flyers": "philadelphia flyers",
    "oilers": "edmonton oilers",
    "flames": "calgary flames",
    "canucks": "vancouver canucks",
    "golden knights": "vegas golden knights",
    "lightning": "tampa bay lightning",
    "avalanche": "colorado avalanche",
    "blues": "saint louis blues",
    # MLB
    "yankees": "new york yankees",
    "red sox": "boston red sox",
    "dodgers": "los angeles dodgers",
    "cubs": "chicago cubs",
    "white sox": "chicago white sox",
    "astros": "houston astros",
    "braves": "atlanta braves",
    "phillies": "philadelphia phillies",
    "mets": "new york mets",
    "padres": "san diego padres",
    "mariners": "seattle mariners",
    # Known cross-feed spellings
    "la clippers": "los angeles clippers",
    "la lakers": "los angeles lakers",
    "hawaii rainbow warriors": "hawai i rainbow warriors",
}

# Leading phrases expanded to their long form
TEAM_PREFIX_ALIASES = {
    "la": "los angeles",
    "l a": "los angeles",
    "ny": "new york",
    "nyc": "new york",
    "gs": "golden state",
    "okc": "oklahoma city",
    "sa": "san antonio",
    "no": "new orleans",
    "nola": "new orleans",
    "phi": "philadelphia",
    "phx": "phoenix",
    "bkn": "brooklyn",
    "por": "portland",
    "tor": "toronto",
    "was": "washington",
    "kc": "kansas city",
    "tb": "tampa bay",
    "gb": "green bay",
    "ne": "new england",
    "sf": "san francisco",
    "lv": "las vegas",
    "st": "saint",
    "mt": "mount",
    "ole miss": "mississippi",
    "uconn": "connecticut",
    "umass": "massachusetts",
    "pitt": "pittsburgh",
    "lsu": "louisiana state",
    "ucf": "central florida",
    "smu": "southern methodist",
    "tcu": "texas christian",
    "byu": "brigham young",
    "unlv": "nevada las vegas",
    "utep": "texas el paso",
    "utsa": "texas san antonio",
    "fiu": "florida international",
    "fau": "florida atlantic",
    "app state": "appalachian state",
    "miami fl": "miami",
    "miami oh": "miami ohio",
}

# Tokens rewritten anywhere after the first position
TEAM_TOKEN_ALIASES = {
    "st": "state",
    "univ": "university",
    "u": "university",
    "intl": "international",
    "mt": "mount",
}


def _frozen(mapping: Mapping[str, str]) -> Mapping[str, str]:
    return MappingProxyType({_clean(k): _clean(v) for k, v in mapping.items()})


@dataclass(frozen=True)
class AliasTable:
    """Static alias data used by normalize_team_name."""

    names: Mapping[str, str] = field(default_factory=dict)
    prefixes: Mapping[str, str] = field(default_factory=dict)
    tokens: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "names", _frozen(self.names))
        object.__setattr__(self, "prefixes", _frozen(self.prefixes))
        object.__setattr__(self, "tokens", _frozen(self.tokens))

    def extend(
        self,
        names: Optional[Mapping[str, str]] = None,
        prefixes: Optional[Mapping[str, str]] = None,
        tokens: Optional[Mapping[str, str]] = None,
    ) -> "AliasTable":
        """Return a new table with the given entries layered over this one."""
        return AliasTable(
            names={**self.names, **(names or {})},
            prefixes={**self.prefixes, **(prefixes or {})},
            tokens={**self.tokens, **(tokens or {})},
        )

    def _expand_prefix(self, key: str) -> str:
        # Longest matching leading phrase wins ("ole miss" before "ole")
        for phrase in sorted(self.prefixes, key=len, reverse=True):
            if key == phrase:
                return self.prefixes[phrase]
            if key.startswith(phrase + " "):
                return self.prefixes[phrase] + key[len(phrase):]
        return key

    def _expand_tokens(self, key: str) -> str:
        tokens = key.split(" ")
        if len(tokens) < 2:
            return key
        rewritten = [tokens[0]] + [self.tokens.get(tok, tok) for tok in tokens[1:]]
        return " ".join(rewritten)

    def canonical(self, cleaned: str) -> str:
        if not cleaned:
            return ""
        if cleaned in self.names:
            return self.names[cleaned]
        expanded = self._expand_tokens(self._expand_prefix(cleaned))
        return self.names.get(expanded, expanded)


DEFAULT_ALIAS_TABLE = AliasTable(
    names=TEAM_NAME_ALIASES,
    prefixes=TEAM_PREFIX_ALIASES,
    tokens=TEAM_TOKEN_ALIASES,
)


def normalize_team_name(name: Any, table: Optional[AliasTable] = None) -> str:
    """
    Canonical key for a team name.

    Total and deterministic: None or non-string input gives "".

    Args:
        name: Team name as reported by any feed
        table: Alias table; DEFAULT_ALIAS_TABLE when omitted

    Returns:
        Lowercase, space-separated canonical name
    """
    return (table or DEFAULT_ALIAS_TABLE).canonical(_clean(name))


def teams_match(
    a_home: Any,
    a_away: Any,
    b_home: Any,
    b_away: Any,
    table: Optional[AliasTable] = None,
) -> bool:
    """True when both records name the same two teams, in either home/away order."""
    ah = normalize_team_name(a_home, table)
    aa = normalize_team_name(a_away, table)
    bh = normalize_team_name(b_home, table)
    ba = normalize_team_name(b_away, table)
    if not (ah and aa and bh and ba):
        return False
    return (ah == bh and aa == ba) or (ah == ba and aa == bh)


def canonical_game_key(
    home: Any,
    away: Any,
    table: Optional[AliasTable] = None,
) -> tuple[str, str]:
    """Order-independent team pair, so home/away disagreements still collide."""
    pair = sorted((normalize_team_name(home, table), normalize_team_name(away, table)))
    return pair[0], pair[1]
