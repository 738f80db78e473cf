import hashlib, json

# ~11 cm at the equator; map picks that differ below this share a cache entry.
COORD_PRECISION = 6

def payload_hash(payload: dict) -> str:
    s = json.dumps(payload, sort_keys=True, default=str)
    return hashlib.sha256(s.encode()).hexdigest()

def coords_pair_hash(lat1: float, lng1: float, lat2: float, lng2: float) -> str:
    return payload_hash({
        "lat1": round(lat1, COORD_PRECISION),
        "lng1": round(lng1, COORD_PRECISION),
        "lat2": round(lat2, COORD_PRECISION),
        "lng2": round(lng2, COORD_PRECISION),
    })
