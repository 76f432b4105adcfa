from typing import Optional
from supabase import create_client, Client, ClientOptions
from washpos.config import SUPABASE_URL, SUPABASE_ANON, SUPABASE_SERVICE_KEY, STORE_TIMEOUT_SECONDS

_supabase: Optional[Client] = None
_service_supabase: Optional[Client] = None

def _options() -> ClientOptions:
    # Toute écriture BookingStore est bornée dans le temps
    return ClientOptions(postgrest_client_timeout=STORE_TIMEOUT_SECONDS)

def get_supabase() -> Client:
    global _supabase
    if _supabase is None:
        if not SUPABASE_URL or not SUPABASE_ANON:
            raise RuntimeError("SUPABASE_URL/SUPABASE_ANON_KEY manquants")
        _supabase = create_client(SUPABASE_URL, SUPABASE_ANON, options=_options())
    return _supabase

def get_service_supabase() -> Client:
    """
    Client service-role (bypass RLS), utilisé par le poste de caisse pour les écritures.
    Retombe sur le client anon si aucune clé service n'est configurée.
    """
    global _service_supabase
    if not SUPABASE_SERVICE_KEY:
        return get_supabase()
    if _service_supabase is None:
        _service_supabase = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY, options=_options())
    return _service_supabase
