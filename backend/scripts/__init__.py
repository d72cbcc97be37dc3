"""
scripts

Scripts CLI de maintenance / données du backend (ex : seed_demo.py pour créer
membres, catalogue et soldes de démo).

Les scripts orchestrent les modules de `stockbot/` (models, settings) et ne
contiennent pas de logique métier du ledger : aucun trade n’est écrit ici.
"""
