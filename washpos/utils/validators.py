import re

PHONE_RE = re.compile(r'^[\d\s\-\+\(\)]+$')

def validate_phone(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError('Le numéro de téléphone est requis')
    if not PHONE_RE.match(v):
        raise ValueError('Le numéro de téléphone ne doit contenir que chiffres, espaces, +, -, ( )')
    return v

def validate_name(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError('Le nom du client est requis')
    return v
