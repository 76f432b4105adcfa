# washpos.config
from decimal import Decimal
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du moteur de caisse.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les URLs/clés Supabase (BookingStore) et le timeout des écritures
- Expose les taux de tarification (remise VIP, taxe) et la politique d'identifiants de repli
- Paramètre le transport des sessions (Redis) et CORS/hosts
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env_bool(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name, default)).lower() in ("1", "true", "yes")

# Supabase: URLs et clés (public/anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("NEXT_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("NEXT_PUBLIC_SUPABASE_ANON_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Écritures BookingStore: appels réseau bloquants avec un délai borné (secondes)
STORE_TIMEOUT_SECONDS = int(_clean_env(os.getenv("STORE_TIMEOUT_SECONDS") or "10"))

# Tarification: remise VIP appliquée au sous-total, taxe sur le montant remisé
VIP_DISCOUNT_RATE = Decimal(_clean_env(os.getenv("VIP_DISCOUNT_RATE") or "0.10"))
TAX_RATE = Decimal(_clean_env(os.getenv("TAX_RATE") or "0.10"))

# Création client/véhicule en échec: référence de repli explicite (historiquement l'id 1)
PLACEHOLDER_ENTITY_ID = int(_clean_env(os.getenv("PLACEHOLDER_ENTITY_ID") or "1"))
ALLOW_PLACEHOLDER_ENTITIES = _env_bool("ALLOW_PLACEHOLDER_ENTITIES", "true")

# Transport des sessions (jeton à usage unique)
HANDOFF_REDIS_URL = _clean_env(os.getenv("HANDOFF_REDIS_URL") or "redis://127.0.0.1:6379/1")
HANDOFF_TTL_SECONDS = int(_clean_env(os.getenv("HANDOFF_TTL_SECONDS") or "3600"))

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
