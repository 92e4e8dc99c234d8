# airports.py: airport/city aliases → IATA code

import re

ALIASES = {
    # ---- North America ----
    "new york": "JFK", "jfk": "JFK", "john f kennedy": "JFK", "kennedy": "JFK",
    "los angeles": "LAX", "lax": "LAX",
    "chicago": "ORD", "o hare": "ORD", "ohare": "ORD", "ord": "ORD",
    "atlanta": "ATL", "hartsfield jackson": "ATL", "atl": "ATL",
    "miami": "MIA", "mia": "MIA",
    "dallas": "DFW", "fort worth": "DFW", "dfw": "DFW",
    "san francisco": "SFO", "sfo": "SFO",
    "denver": "DEN", "den": "DEN",
    "boston": "BOS", "logan": "BOS", "bos": "BOS",
    "seattle": "SEA", "seattle tacoma": "SEA", "sea": "SEA",
    "toronto": "YYZ", "pearson": "YYZ", "yyz": "YYZ",
    "vancouver": "YVR", "yvr": "YVR",
    "montreal": "YUL", "trudeau": "YUL", "yul": "YUL",

    # ---- Europe ----
    "london": "LHR", "heathrow": "LHR", "lhr": "LHR",
    "paris": "CDG", "charles de gaulle": "CDG", "cdg": "CDG",
    "amsterdam": "AMS", "schiphol": "AMS", "ams": "AMS",
    "frankfurt": "FRA", "fra": "FRA",
    "istanbul": "IST", "ist": "IST",
    "madrid": "MAD", "barajas": "MAD", "mad": "MAD",
    "rome": "FCO", "fiumicino": "FCO", "leonardo da vinci": "FCO", "fco": "FCO",
    "munich": "MUC", "muc": "MUC",
    "zurich": "ZRH", "zrh": "ZRH",
    "brussels": "BRU", "bru": "BRU",

    # ---- Middle East ----
    "dubai": "DXB", "dxb": "DXB",
    "doha": "DOH", "hamad": "DOH", "doh": "DOH",
    "abu dhabi": "AUH", "auh": "AUH",

    # ---- Africa ----
    "johannesburg": "JNB", "o r tambo": "JNB", "jnb": "JNB",
    "cairo": "CAI", "cai": "CAI",
    "cape town": "CPT", "cpt": "CPT",
    "addis ababa": "ADD", "bole": "ADD", "addis ababa bole": "ADD", "add": "ADD",
    "nairobi": "NBO", "jomo kenyatta": "NBO", "nbo": "NBO",
    "lagos": "LOS", "murtala muhammed": "LOS", "los": "LOS",
    "accra": "ACC", "kotoka": "ACC", "acc": "ACC",
    "casablanca": "CMN", "mohammed v": "CMN", "cmn": "CMN",
    "dakar": "DKR", "blaise diagne": "DKR", "dkr": "DKR",
    "tunis": "TUN", "tunis carthage": "TUN", "tun": "TUN",

    # ---- Asia ----
    "hong kong": "HKG", "hkg": "HKG",
    "singapore": "SIN", "changi": "SIN", "sin": "SIN",
    "tokyo": "NRT", "narita": "NRT", "nrt": "NRT",
    "seoul": "ICN", "incheon": "ICN", "icn": "ICN",
    "bangkok": "BKK", "suvarnabhumi": "BKK", "bkk": "BKK",
    "delhi": "DEL", "new delhi": "DEL", "indira gandhi": "DEL", "del": "DEL",
    "mumbai": "BOM", "bom": "BOM",

    # ---- Oceania ----
    "sydney": "SYD", "kingsford smith": "SYD", "syd": "SYD",
    "melbourne": "MEL", "mel": "MEL",
    "auckland": "AKL", "akl": "AKL",
}

# a bare code, or a name that says it is an airport
AIRPORT_RX = re.compile(r"^(?:[A-Za-z]{3}|\w[\w\s.'-]*\s*(?:international|airport|intl).*)$", re.I)


def _norm(s: str) -> str:
    if not s: return ""
    s = s.strip().lower()
    # remove generic words
    s = s.replace("international", "").replace("airport", "").replace("intl", "")
    # drop parentheses content and punctuation
    s = re.sub(r"\(.*?\)", " ", s)
    s = re.sub(r"[^\w\s]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def to_code(s: str) -> str:
    """Return IATA code or '' if unknown."""
    k = _norm(s)
    return ALIASES.get(k, "")


def is_airport(s: str) -> bool:
    """True for a 3-letter code or a full airport name ('Bole International Airport')."""
    return bool(AIRPORT_RX.match((s or "").strip()))
