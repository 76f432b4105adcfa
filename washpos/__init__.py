"""
WashPOS: moteur de caisse d'une station de lavage.
Tarification du panier, encaissements, cycle de vie du lavage et réconciliation
de l'état de paiement avec la réservation Supabase.
"""

__version__ = "0.1.0"
