# marketplace.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du service marketplace.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe)
- Paramètres métier exposés à l'environnement: devise, version d'API Stripe, prix premium
- Secret partagé du job de facturation saisonnière (appelé par un cron)
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon pour l'auth utilisateur, service pour les écritures serveur)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or os.getenv("EXPO_PUBLIC_SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(
    os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_SERVICE_ROLE_KEY") or ""
)

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clé secrète, secrets webhook (plateforme et Connect)
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_CONNECT_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_CONNECT_WEBHOOK_SECRET") or "")
STRIPE_API_VERSION = _clean_env(os.getenv("STRIPE_API_VERSION") or "2024-06-20")

# Devise unique du marketplace (unités mineures côté Stripe)
CURRENCY = _clean_env(os.getenv("CURRENCY") or "usd").lower()

# Prix Stripe de l'abonnement premium vendeur (5$/mois)
PREMIUM_PRICE_ID = _clean_env(os.getenv("PREMIUM_PRICE_ID") or "price_vendor_premium_5_monthly")

# Origine de l'application: base des URLs de retour Stripe si la requête n'a pas d'en-tête Origin
APP_BASE_URL = _clean_env(os.getenv("APP_BASE_URL") or "http://localhost:8081").rstrip("/")

# Secret partagé du cron de facturation saisonnière (Authorization: Bearer <secret>)
BILLING_CRON_SECRET = _clean_env(os.getenv("BILLING_CRON_SECRET") or "")

# CORS: le client mobile appelle l'API depuis n'importe quelle origine
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
